#Filename: registry.py
"""
INSTRUCTION REGISTRY
Deduplicates decoded instructions by their idempotency token (etag).
At-most-once execution per distinct instruction for the lifetime of the registry.

History is append-only and audit-only; it is never consulted to decide what to run.
Tokens are never evicted, so memory grows with the number of distinct instructions
seen by one bridge. Expected volume per session is low.

Single writer: admit() is only called from the surface-owning event loop.
"""

import logging
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from bridge_common import InstructionDecodeError
from structures import Instruction

log = logging.getLogger("InstructionRegistry")

class InstructionRegistry:
    """Tracks which instructions have been accepted for execution."""
    __slots__ = ('_handled', '_history')

    def __init__(self) -> None:
        self._handled: Dict[str, bool] = {}
        self._history: List[Instruction] = []

    def admit(self, raw_payload: Any) -> Optional[Instruction]:
        """
        Decodes and admits an INSTRUCTIONS payload.
        Returns the Instruction if it is new, None if malformed or already handled.
        Rejections never change state.
        """
        try:
            instruction = Instruction.from_payload(raw_payload)
        except InstructionDecodeError as e:
            log.debug(f"[ADMIT] Dropped malformed instruction: {e}")
            return None

        etag = instruction.etag
        if etag in self._handled:
            log.debug(f"[ADMIT] Duplicate instruction ignored (etag={etag})")
            return None

        self._history.append(instruction)
        self._handled[etag] = True
        log.info(f"[ADMIT] #{len(self._history) - 1} {instruction}")
        return instruction

    def is_handled(self, etag: str) -> bool:
        return etag in self._handled

    @property
    def history(self) -> Tuple[Instruction, ...]:
        return tuple(self._history)

    @property
    def handled(self) -> FrozenSet[str]:
        return frozenset(self._handled)

    def __len__(self) -> int:
        return len(self._history)

    def __repr__(self) -> str:
        return f"<InstructionRegistry admitted={len(self._history)}>"
