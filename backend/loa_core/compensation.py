"""
Compensating cleanup for multi-step operations.

Each completed side effect (an uploaded file, a created record) registers the
step that undoes it. On a later failure the steps run newest first. A failing
compensation is logged and collected; it never replaces the original failure.
"""

from typing import Awaitable, Callable, List, Tuple
import logging

logger = logging.getLogger(__name__)

Compensation = Callable[[], Awaitable[None]]


class CompensationFailure:
    def __init__(self, description: str, error: Exception):
        self.description = description
        self.error = error

    def __repr__(self):
        return f"CompensationFailure({self.description!r}, {self.error!r})"


class CompensationStack:

    def __init__(self, operation: str):
        self.operation = operation
        self._steps: List[Tuple[str, Compensation]] = []

    def push(self, description: str, step: Compensation) -> None:
        self._steps.append((description, step))

    def clear(self) -> None:
        """Forget registered steps once the operation has committed."""
        self._steps.clear()

    def __len__(self):
        return len(self._steps)

    async def run(self) -> List[CompensationFailure]:
        failures = []
        while self._steps:
            description, step = self._steps.pop()
            try:
                await step()
                logger.info(f"[COMPENSATION] {self.operation}: undid {description}")
            except Exception as e:
                logger.warning(f"[COMPENSATION] {self.operation}: could not undo {description}: {e}")
                failures.append(CompensationFailure(description, e))
        return failures
