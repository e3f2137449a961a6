"""Scheduling directives returned by a reconciliation pass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Action(str, Enum):
    """What the work queue should do with an object after a pass."""

    DONE = "done"
    REQUEUE_AFTER = "requeue_after"
    REQUEUE_ERROR = "requeue_error"


@dataclass(frozen=True)
class SchedulingDirective:
    """Outcome of one pass as seen by the scheduler.

    Attributes:
        action: Requested scheduling action
        delay: Delay before the next pass, for REQUEUE_AFTER
        error: Failure that caused a REQUEUE_ERROR
    """

    action: Action
    delay: float = 0.0
    error: Exception | None = None

    @classmethod
    def done(cls) -> SchedulingDirective:
        return cls(Action.DONE)

    @classmethod
    def requeue_after(cls, delay: float) -> SchedulingDirective:
        return cls(Action.REQUEUE_AFTER, delay=delay)

    @classmethod
    def requeue_error(cls, error: Exception) -> SchedulingDirective:
        return cls(Action.REQUEUE_ERROR, error=error)

    @property
    def result(self) -> str:
        """Metric label for the pass result."""
        return {
            Action.DONE: "success",
            Action.REQUEUE_AFTER: "requeue",
            Action.REQUEUE_ERROR: "error",
        }[self.action]
