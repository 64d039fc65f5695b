#Filename: dispatcher.py
"""
BRIDGE CONTROLLER
Orchestrator for the Instruction Bridge.
Classifies boundary messages, feeds the registry, hands admitted instructions to
the executor and delivers results back into the surface.

All entry points run on the surface-owning event loop. Executor tasks complete on
their own schedule; their results re-enter through SurfaceContext.post() before
anything touches the surface.
"""

import asyncio
import logging
import webbrowser
from typing import Any, Callable, NamedTuple, Optional, Set, Union

from bridge_common import (
    BridgeConfig, DeepLinkError, EXTRA_INFORMATION_KEY, INSTRUCTIONS_KEY,
    OPEN_SWEDISH_BANKID, SUPPLEMENTAL_INFORMATION
)
from deeplink import rewrite_bankid_url
from executor import RequestExecutor
from registry import InstructionRegistry
from structures import ResponseEnvelope
from surface import SurfaceContext

log = logging.getLogger("BridgeController")

UrlOpener = Callable[[str], Any]

# -- Boundary Message Variants --

class InstructionMessage(NamedTuple):
    payload: Any

class DeepLinkMessage(NamedTuple):
    url: str

class UnknownMessage(NamedTuple):
    reason: str

BoundaryMessage = Union[InstructionMessage, DeepLinkMessage, UnknownMessage]

def classify_message(body: Any) -> BoundaryMessage:
    """Sorts a raw boundary payload into exactly one message variant."""
    if not isinstance(body, dict):
        return UnknownMessage(f"body is {type(body).__name__}, not an object")

    extra = body.get(EXTRA_INFORMATION_KEY)
    if isinstance(extra, dict) and isinstance(extra.get(INSTRUCTIONS_KEY), dict):
        return InstructionMessage(extra[INSTRUCTIONS_KEY])

    if body.get('name') == OPEN_SWEDISH_BANKID and isinstance(body.get('value'), str):
        return DeepLinkMessage(body['value'])

    return UnknownMessage("no instruction or deep link in payload")

def build_delivery_script(serialized: str) -> str:
    """Script that re-posts a result inside the surface as a new message."""
    return (
        "(function() {\n"
        f"    window.postMessage({{ name: '{SUPPLEMENTAL_INFORMATION}', value: {serialized} }});\n"
        "})();"
    )

class BridgeController:
    """One controller per surface. Not shared between surfaces."""

    def __init__(
        self,
        surface: SurfaceContext,
        registry: Optional[InstructionRegistry] = None,
        executor: Optional[RequestExecutor] = None,
        config: Optional[BridgeConfig] = None,
        url_opener: Optional[UrlOpener] = None
    ) -> None:
        self.config = config or BridgeConfig()
        self.surface = surface
        self.registry = registry if registry is not None else InstructionRegistry()
        self.executor = executor if executor is not None else RequestExecutor(config=self.config)
        self.url_opener = url_opener or webbrowser.open
        self.delivered = 0
        self._inflight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._inflight)

    def on_message(self, channel: str, body: Any) -> None:
        """Entry point for every message the boundary channel receives."""
        if channel != self.config.channel:
            log.debug(f"Ignoring message on foreign channel {channel!r}")
            return

        message = classify_message(body)
        if isinstance(message, InstructionMessage):
            self._handle_instruction(message.payload)
        elif isinstance(message, DeepLinkMessage):
            self._handle_deep_link(message.url)
        else:
            log.debug(f"Ignoring message: {message.reason}")

    def _handle_instruction(self, payload: Any) -> None:
        instruction = self.registry.admit(payload)
        if instruction is None:
            return
        # The admitted instruction is passed explicitly; history is audit-only.
        task = self.executor.submit(instruction.request)
        self._inflight.add(task)
        task.add_done_callback(self._on_executed)

    def _on_executed(self, task: 'asyncio.Task[Optional[ResponseEnvelope]]') -> None:
        self._inflight.discard(task)
        if task.cancelled():
            log.debug(f"[EXEC] {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            log.error(f"[EXEC] {task.get_name()} crashed: {exc!r}")
            return
        envelope = task.result()
        if envelope is None:
            return
        if not self.surface.post(self.deliver, envelope.to_json()):
            log.info(f"[DELIVER] Surface gone, result of {task.get_name()} dropped")

    def deliver(self, serialized: str) -> None:
        """Injects a serialized envelope into the surface. Surface loop only."""
        if self.surface.evaluate(build_delivery_script(serialized)):
            self.delivered += 1
            log.info(f"[DELIVER] {SUPPLEMENTAL_INFORMATION} ({len(serialized)}b)")
        else:
            log.info("[DELIVER] Surface gone, delivery dropped")

    def _handle_deep_link(self, raw_url: str) -> None:
        try:
            url = rewrite_bankid_url(raw_url)
        except DeepLinkError as e:
            log.warning(f"[LINK] {e}")
            return
        log.info(f"[LINK] Opening {url}")
        if self.url_opener(url) is False:
            log.warning(f"[LINK] Host could not open {url}")

    async def wait_idle(self) -> None:
        """Waits for in-flight instructions and the deliveries they post."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        await asyncio.sleep(0)

    async def close(self) -> None:
        """Cancels in-flight instructions. Their results are never delivered."""
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
