#Filename: structures.py
"""
CORE DATA STRUCTURES
Single Source of Truth (SSOT) for the instruction data model.
Structural decoding of boundary payloads happens here and nowhere else.
Strict type enforcement at the runtime boundary.
"""

import json
from typing import Dict, List, Optional, Any, NamedTuple

from bridge_common import (
    InstructionDecodeError, RESPONSE_OBJECT, METHOD_POST, redact_headers
)

# -- Decode Helpers --

def _require(payload: Dict[str, Any], key: str, kind: type, where: str) -> Any:
    if key not in payload:
        raise InstructionDecodeError(f"{where}: missing '{key}'")
    value = payload[key]
    # bool is an int subclass; keep the two apart
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise InstructionDecodeError(
            f"{where}: '{key}' must be {kind.__name__}, got {type(value).__name__}"
        )
    return value

def _string_map(value: Any, where: str) -> Dict[str, str]:
    if not isinstance(value, dict):
        raise InstructionDecodeError(f"{where} must be an object, got {type(value).__name__}")
    for k, v in value.items():
        if not isinstance(k, str) or not isinstance(v, str):
            raise InstructionDecodeError(f"{where} must map strings to strings")
    return dict(value)

# -- Types --

class CookieDescriptor(NamedTuple):
    """A cookie the surface wants present in the shared jar."""
    name: str
    value: str
    domain: str
    path: str
    secure: bool
    http_only: bool

    @classmethod
    def from_payload(cls, payload: Any) -> 'CookieDescriptor':
        if not isinstance(payload, dict):
            raise InstructionDecodeError("cookie must be an object")
        return cls(
            name=_require(payload, 'name', str, "cookie"),
            value=_require(payload, 'value', str, "cookie"),
            domain=_require(payload, 'domain', str, "cookie"),
            path=_require(payload, 'path', str, "cookie"),
            secure=_require(payload, 'secure', bool, "cookie"),
            http_only=_require(payload, 'httpOnly', bool, "cookie"),
        )

class RequestDescriptor(NamedTuple):
    """
    A fully specified outbound request.
    method may be None; anything but the exact string "POST" executes as GET.
    """
    url: str
    method: Optional[str]
    body: Optional[Dict[str, str]]
    headers: Dict[str, str]
    cookies: Optional[List[CookieDescriptor]]
    etag: str

    @property
    def is_post(self) -> bool:
        return self.method == METHOD_POST

    @classmethod
    def from_payload(cls, payload: Any) -> 'RequestDescriptor':
        if not isinstance(payload, dict):
            raise InstructionDecodeError("request must be an object")

        url = _require(payload, 'url', str, "request")
        etag = _require(payload, 'etag', str, "request")
        if 'headers' not in payload:
            raise InstructionDecodeError("request: missing 'headers'")
        headers = _string_map(payload['headers'], "request.headers")

        method = payload.get('method')
        if method is not None and not isinstance(method, str):
            raise InstructionDecodeError("request: 'method' must be str")

        body = payload.get('body')
        if body is not None:
            body = _string_map(body, "request.body")

        cookies = payload.get('cookies')
        if cookies is not None:
            if not isinstance(cookies, list):
                raise InstructionDecodeError("request: 'cookies' must be a list")
            cookies = [CookieDescriptor.from_payload(c) for c in cookies]

        return cls(url, method, body, headers, cookies, etag)

    def display_str(self) -> str:
        """Sanitized string for CLI display."""
        clean_url = self.url
        if len(clean_url) > 60:
            clean_url = clean_url[:57] + "..."
        n_cookies = len(self.cookies) if self.cookies else 0
        return f"{(self.method or 'GET'):<6} {clean_url} (etag={self.etag}, cookies={n_cookies})"

    def to_dict(self) -> Dict[str, Any]:
        """Log-safe dictionary: sensitive headers and cookie values are masked."""
        return {
            'url': self.url,
            'method': self.method,
            'body': self.body,
            'headers': redact_headers(self.headers),
            'cookies': [c.name for c in self.cookies] if self.cookies else None,
            'etag': self.etag
        }

class Instruction(NamedTuple):
    """Wraps exactly one request; the unit of deduplication and execution."""
    request: RequestDescriptor

    @property
    def etag(self) -> str:
        return self.request.etag

    @classmethod
    def from_payload(cls, payload: Any) -> 'Instruction':
        """Decodes the INSTRUCTIONS payload. Raises InstructionDecodeError."""
        if not isinstance(payload, dict):
            raise InstructionDecodeError(
                f"instruction must be an object, got {type(payload).__name__}"
            )
        if 'request' not in payload:
            raise InstructionDecodeError("instruction: missing 'request'")
        return cls(RequestDescriptor.from_payload(payload['request']))

    def __str__(self) -> str:
        return self.request.display_str()

class ResponseEnvelope:
    """
    Normalized result of a successful instruction.
    Serialized with a fixed field order and sorted header names.
    """
    __slots__ = ('type', 'headers', 'response')

    def __init__(self, headers: Dict[str, str], response: Any, envelope_type: str = RESPONSE_OBJECT) -> None:
        if not isinstance(headers, dict):
            raise TypeError(f"headers must be Dict[str, str], got {type(headers).__name__}")
        self.type = envelope_type
        self.headers = headers
        self.response = response

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'headers': {k: self.headers[k] for k in sorted(self.headers)},
            'response': self.response
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResponseEnvelope):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"<ResponseEnvelope {self.type} headers={len(self.headers)}>"
