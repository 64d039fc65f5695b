#Filename: executor.py
"""
REQUEST EXECUTOR
Performs an instruction's HTTP call with the host's network and cookie context.

- Cookies carried by the instruction are applied to the shared jar first.
- Only the exact method string "POST" sends POST; everything else is GET.
- POST bodies are JSON objects with sorted keys so identical instructions
  always produce byte-identical requests.
- Status 200 produces a ResponseEnvelope. Anything else is logged and dropped.

KNOWN LIMITATION: authentication failures (400/401) are logged only. The
surface never hears about them and has to rely on its own timeout.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx

from bridge_common import (
    BridgeConfig, METHOD_GET, METHOD_POST, JSON_CONTENT_TYPE, AUTH_FAILURE_STATUSES
)
from credential_store import CredentialStore
from structures import RequestDescriptor, ResponseEnvelope

log = logging.getLogger("RequestExecutor")

# -- Stateless Helper Functions --

def encode_body(body: Dict[str, str]) -> bytes:
    """Compact JSON with keys in sorted order."""
    return json.dumps(body, sort_keys=True, separators=(',', ':')).encode('utf-8')

def request_arguments(request: RequestDescriptor) -> Dict[str, Any]:
    """Translates a descriptor into httpx request arguments."""
    method = METHOD_POST if request.is_post else METHOD_GET
    headers = list(request.headers.items())
    content = None

    if request.is_post and request.body is not None:
        content = encode_body(request.body)
        if not any(k.lower() == 'content-type' for k in request.headers):
            headers.append(('Content-Type', JSON_CONTENT_TYPE))

    return {
        'method': method,
        'url': request.url,
        'headers': headers,
        'content': content
    }

def flatten_headers(headers: httpx.Headers) -> Dict[str, str]:
    """Flat header map keeping the server's casing. Last value wins on repeats."""
    flat: Dict[str, str] = {}
    for raw_key, raw_value in headers.raw:
        flat[raw_key.decode(headers.encoding)] = raw_value.decode(headers.encoding)
    return flat

def decode_response_body(content: bytes) -> Any:
    """Parsed JSON, or None if the body is empty or not JSON."""
    try:
        return json.loads(content)
    except ValueError:
        return None

class RequestExecutor:
    """
    Executes request descriptors. Each execution uses its own short-lived
    AsyncClient bound to the credential store's jar.
    """
    __slots__ = ('credential_store', 'transport', 'config')

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        config: Optional[BridgeConfig] = None
    ) -> None:
        self.credential_store = credential_store if credential_store is not None else CredentialStore()
        self.transport = transport
        self.config = config or BridgeConfig()

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            'cookies': self.credential_store.jar,
            'http2': self.config.http2,
            'verify': self.config.verify_ssl,
        }
        if self.transport is not None:
            kwargs['transport'] = self.transport
        # Leave the transport default in place unless explicitly configured
        if self.config.timeout is not None:
            kwargs['timeout'] = httpx.Timeout(self.config.timeout)
        return kwargs

    def submit(self, request: RequestDescriptor) -> 'asyncio.Task[Optional[ResponseEnvelope]]':
        """Schedules execute() on the running loop without waiting for it."""
        loop = asyncio.get_running_loop()
        return loop.create_task(self.execute(request), name=f"instruction-{request.etag}")

    async def execute(self, request: RequestDescriptor) -> Optional[ResponseEnvelope]:
        """Runs one request. Returns the envelope on 200, otherwise None."""
        if request.cookies:
            self.credential_store.apply(request.cookies)

        args = request_arguments(request)
        log.info(f"[EXEC] {args['method']} {request.url} (etag={request.etag})")

        try:
            async with httpx.AsyncClient(**self._client_kwargs()) as client:
                response = await client.request(**args)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.error(f"[EXEC] Transport failure for etag={request.etag}: {e!r}")
            return None
        except UnicodeEncodeError as e:
            # Header values must be ASCII on the wire
            log.error(f"[EXEC] Could not encode request for etag={request.etag}: {e!r}")
            return None

        status = response.status_code
        if status == 200:
            envelope = ResponseEnvelope(
                flatten_headers(response.headers),
                decode_response_body(response.content)
            )
            log.debug(f"[EXEC] 200 for etag={request.etag} ({len(response.content)}b)")
            return envelope

        if status in AUTH_FAILURE_STATUSES:
            if status == 400:
                log.warning(f"[AUTH] Error in authentication (400) for etag={request.etag}")
            else:
                log.warning(f"[AUTH] Authentication object was not found (401) for etag={request.etag}")
            return None

        log.error(f"[EXEC] Unexpected status {status} for etag={request.etag}")
        return None
