#Filename: bridge_common.py
"""
BRIDGE COMMON DEFINITIONS
Shared constants, exceptions and run-time configuration for the Instruction Bridge.
Single Source of Truth (SSOT) for the boundary protocol's reserved names.
"""

from typing import Optional, Set, Dict, Any

# -- Boundary Protocol Constants --

BRIDGE_CHANNEL: str = "iOSNative"                    # Reserved message handler name
EXTRA_INFORMATION_KEY: str = "extraInformation"
INSTRUCTIONS_KEY: str = "INSTRUCTIONS"
SUPPLEMENTAL_INFORMATION: str = "SUPPLEMENTAL_INFORMATION"
RESPONSE_OBJECT: str = "RESPONSE_OBJECT"
OPEN_SWEDISH_BANKID: str = "OPEN_SWEDISH_BANKID"

# -- Deep Link --
DEEP_LINK_REDIRECT_PARAM: str = "redirect"
DEEP_LINK_REDIRECT_VALUE: str = "bankid:///"

# -- HTTP --
METHOD_POST: str = "POST"
METHOD_GET: str = "GET"
JSON_CONTENT_TYPE: str = "application/json"
AUTH_FAILURE_STATUSES: Set[int] = {400, 401}

# OpSec: Headers to redact in logs and console output
SENSITIVE_HEADERS: Set[str] = {
    'authorization', 'proxy-authorization', 'cookie', 'set-cookie',
    'x-auth-token', 'x-api-key', 'access_token', 'authentication', 'bearer'
}

# -- Exceptions --

class BridgeError(Exception):
    """Base exception for Instruction Bridge operations."""

class InstructionDecodeError(BridgeError):
    """Raised when a boundary payload does not have the instruction shape."""

class CookieError(BridgeError):
    """Raised when a cookie descriptor cannot form a valid jar cookie."""

class DeepLinkError(BridgeError):
    """Raised when a deep-link URL cannot be rewritten."""

# -- Helpers --

def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Returns a copy of headers with sensitive values masked."""
    return {
        k: ("[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }

# -- Configuration --

class BridgeConfig:
    """
    Run-time knobs for a bridge instance.
    timeout=None keeps the HTTP transport's default timeout.
    """
    __slots__ = ('channel', 'timeout', 'http2', 'verify_ssl', 'open_links')

    def __init__(
        self,
        channel: str = BRIDGE_CHANNEL,
        timeout: Optional[float] = None,
        http2: bool = False,
        verify_ssl: bool = True,
        open_links: bool = True
    ) -> None:
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.channel = channel
        self.timeout = timeout
        self.http2 = http2
        self.verify_ssl = verify_ssl
        self.open_links = open_links

    def to_dict(self) -> Dict[str, Any]:
        return {
            'channel': self.channel,
            'timeout': self.timeout,
            'http2': self.http2,
            'verify_ssl': self.verify_ssl,
            'open_links': self.open_links
        }

    def __repr__(self) -> str:
        return f"<BridgeConfig channel={self.channel} timeout={self.timeout} http2={self.http2}>"
