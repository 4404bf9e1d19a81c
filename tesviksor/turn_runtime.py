from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("tesviksor.chat")

ContextT = TypeVar("ContextT")


@dataclass
class TurnStep(Generic[ContextT]):
    """Named step of a chat-turn pipeline."""
    name: str
    fn: Callable[[ContextT], None]
    skip_if: Optional[Callable[[ContextT], bool]] = None


class TurnRunner(Generic[ContextT]):
    """Run chat-turn steps in order over one mutable context."""

    def __init__(self, steps: List[TurnStep[ContextT]]) -> None:
        self._steps = steps

    def run(self, context: ContextT) -> List[str]:
        """Purpose: Execute steps in order, honouring skip_if guards.
        Inputs/Outputs: Input is a mutable context; output is the names of steps run.
        Side Effects / State: Invokes step functions that mutate the context.
        Dependencies: Depends on TurnStep.fn and TurnStep.skip_if semantics.
        Failure Modes: Exceptions in step functions propagate to the caller.
        If Removed: The chat handler cannot sequence decide/generate/commit.
        Testing Notes: Verify skip_if with simple recording steps.
        """
        executed: List[str] = []
        for step in self._steps:
            if step.skip_if and step.skip_if(context):
                logger.debug("step=%s skipped", step.name)
                continue
            step.fn(context)
            executed.append(step.name)
        return executed
