#Filename: credential_store.py
"""
CREDENTIAL STORE ADAPTER
Applies surface-provided cookie descriptors to the process-wide cookie jar.

Every bridge in the process shares SHARED_COOKIE_JAR, and every outbound request
consults it. Cookies are never removed or scoped here: they stay in the jar until
they expire or the host clears it, outliving the request that carried them.
Writers serialize on a process-wide lock.
"""

import logging
import re
import threading
from http.cookiejar import Cookie, CookieJar
from typing import Dict, Iterable, List, Optional, Any

from bridge_common import CookieError
from structures import CookieDescriptor

log = logging.getLogger("CredentialStore")

SHARED_COOKIE_JAR: CookieJar = CookieJar()
_SHARED_JAR_LOCK = threading.Lock()

# RFC 6265 token: no CTLs, whitespace or separators
COOKIE_NAME_PATTERN = re.compile(r'^[!#$%&\'*+\-.^_`|~0-9a-zA-Z]+$')
INVALID_VALUE_CHARS = (';', '\r', '\n', '\x00')

def build_cookie(descriptor: CookieDescriptor) -> Cookie:
    """Converts a descriptor to a jar cookie. Raises CookieError if it cannot be one."""
    if not descriptor.name or not COOKIE_NAME_PATTERN.match(descriptor.name):
        raise CookieError(f"Invalid cookie name: {descriptor.name!r}")
    if any(c in descriptor.value for c in INVALID_VALUE_CHARS):
        raise CookieError(f"Invalid value for cookie {descriptor.name}")
    if not descriptor.domain:
        raise CookieError(f"Cookie {descriptor.name} has no domain")
    if not descriptor.path:
        raise CookieError(f"Cookie {descriptor.name} has no path")

    return Cookie(
        version=0,
        name=descriptor.name,
        value=descriptor.value,
        port=None,
        port_specified=False,
        domain=descriptor.domain,
        domain_specified=True,
        domain_initial_dot=descriptor.domain.startswith('.'),
        path=descriptor.path,
        path_specified=True,
        secure=descriptor.secure,
        expires=None,
        discard=True,
        comment=None,
        comment_url=None,
        rest={'HttpOnly': None} if descriptor.http_only else {},
        rfc2109=False,
    )

class CredentialStore:
    """
    Thin adapter over a cookie jar.
    Defaults to the shared process-wide jar; tests may pass an isolated one.
    """
    __slots__ = ('jar', '_lock')

    def __init__(self, jar: Optional[CookieJar] = None, lock: Optional[Any] = None) -> None:
        if jar is None:
            self.jar = SHARED_COOKIE_JAR
            self._lock = _SHARED_JAR_LOCK
        else:
            self.jar = jar
            self._lock = lock or threading.Lock()

    def apply(self, cookies: Iterable[CookieDescriptor]) -> int:
        """
        Inserts each descriptor into the jar, in order.
        Malformed descriptors are skipped; the rest still apply.
        Returns the number of cookies applied.
        """
        applied = 0
        with self._lock:
            for descriptor in cookies:
                try:
                    cookie = build_cookie(descriptor)
                except CookieError as e:
                    log.warning(f"[JAR] Skipping cookie: {e}")
                    continue
                self.jar.set_cookie(cookie)
                applied += 1
        log.debug(f"[JAR] Applied {applied} cookie(s)")
        return applied

    def snapshot(self) -> List[Dict[str, Any]]:
        """Jar contents for display. Values are never included."""
        return [
            {
                'name': c.name,
                'domain': c.domain,
                'path': c.path,
                'secure': c.secure,
                'httpOnly': c.has_nonstandard_attr('HttpOnly'),
            }
            for c in self.jar
        ]

    def __len__(self) -> int:
        return len(self.jar)
