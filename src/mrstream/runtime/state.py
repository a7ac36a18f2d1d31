from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from ..errors import OrchestrationError


def phase_names(step: int) -> Tuple[str, str]:
    return f"map_{step}", f"reduce_{step}"


class StepCounter:
    """Numbers connect steps in traversal order, starting from zero.

    A fresh counter is created for every traversal; nothing about it is ever
    persisted or shared between processes. Numbers only go up, so no two
    steps of one traversal share a phase name.
    """

    def __init__(self) -> None:
        self.count = 0

    def next(self) -> int:
        step = self.count
        self.count += 1
        return step


@dataclass
class RunContext:
    counter: StepCounter = field(default_factory=StepCounter)
    value: Any = None
    error: Optional[OrchestrationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
