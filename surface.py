#Filename: surface.py
"""
SURFACE CONTEXT
Host-side endpoint of the boundary channel.

The surface may only be touched from the loop that owns it. Work finishing
elsewhere re-enters through post(), which always goes through
call_soon_threadsafe. Once destroyed, posted work and script evaluations are
dropped, never queued.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

log = logging.getLogger("Surface")

ScriptEvaluator = Callable[[str], Any]

class SurfaceContext:
    """Binds a script evaluator to the event loop that owns the surface."""
    __slots__ = ('_evaluator', '_loop', '_alive')

    def __init__(
        self,
        evaluator: ScriptEvaluator,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> None:
        self._evaluator = evaluator
        self._loop = loop or asyncio.get_running_loop()
        self._alive = True

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def is_alive(self) -> bool:
        return self._alive

    def destroy(self) -> None:
        """Marks the surface as gone (closed or navigated away)."""
        self._alive = False

    def post(self, callback: Callable[..., Any], *args: Any) -> bool:
        """
        Schedules callback on the surface-owning loop. Safe from any thread.
        Returns False when the surface or its loop is already gone.
        """
        if not self._alive or self._loop.is_closed():
            log.debug("[SURFACE] Surface gone, dropping posted work")
            return False
        self._loop.call_soon_threadsafe(self._run_if_alive, callback, args)
        return True

    def _run_if_alive(self, callback: Callable[..., Any], args: tuple) -> None:
        if not self._alive:
            log.debug("[SURFACE] Surface destroyed before posted work ran")
            return
        callback(*args)

    def evaluate(self, script: str) -> bool:
        """Runs script in the surface. Must be called on the owning loop."""
        if not self._alive:
            log.debug("[SURFACE] Surface gone, dropping script")
            return False
        self._evaluator(script)
        return True
