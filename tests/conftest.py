# conftest.py
import sys
import os
from http.cookiejar import CookieJar
from typing import List

import pytest

sys.path.append(os.getcwd())
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from credential_store import CredentialStore

def make_request_payload(etag="e1", url="https://api.example/x", method="GET", **overrides):
    """Builds an INSTRUCTIONS payload ({"request": {...}})."""
    request = {"url": url, "method": method, "headers": {}, "etag": etag}
    request.update(overrides)
    return {"request": request}

def make_message(etag="e1", **kwargs):
    """Wraps an instruction payload in a full boundary message."""
    return {"extraInformation": {"INSTRUCTIONS": make_request_payload(etag, **kwargs)}}

class RecordingSurface:
    """Collects scripts the bridge evaluates."""
    def __init__(self):
        self.scripts: List[str] = []

    def __call__(self, script: str) -> None:
        self.scripts.append(script)

@pytest.fixture
def isolated_store():
    # Keeps tests out of the process-wide jar
    return CredentialStore(jar=CookieJar())

@pytest.fixture
def recording_surface():
    return RecordingSurface()
