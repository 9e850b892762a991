"""Turning a predicted target column into a heading."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Protocol, Tuple


class PredictionConsumer(Protocol):
    """Anything that wants to hear where the target was seen."""

    def on_prediction(self, offset: int, size_class: int) -> None:
        """``offset`` is the predicted target column in camera pixels."""


def normalise_degrees(angle: float) -> float:
    return angle % 360.0


@dataclass
class HeadingLock:
    """Steer toward the predicted column, holding course once locked on.

    The first time the required turn is within ``lock_degrees`` that turn is
    remembered. From then on any turn that jumps more than ``jump_degrees``
    from the previous one is treated as a bad prediction and replaced by the
    remembered turn.
    """

    frame_width: int = 200
    half_fov_degrees: float = 45.0
    lock_degrees: float = 10.0
    jump_degrees: float = 15.0
    locked: bool = field(default=False, init=False)
    locked_turn: float = field(default=0.0, init=False)
    last_turn: float = field(default=360.0, init=False)
    last_offset: int | None = field(default=None, init=False)
    predictions: List[Tuple[int, int]] = field(default_factory=list, init=False, repr=False)

    def turn_for(self, offset: float) -> float:
        """Degrees to turn; left of centre is positive."""

        centre = self.frame_width / 2.0
        return -(offset - centre) / centre * self.half_fov_degrees

    def on_prediction(self, offset: int, size_class: int) -> None:
        self.last_offset = int(offset)
        self.predictions.append((int(offset), int(size_class)))

    def next_turn(self) -> float:
        if self.last_offset is None:
            return 0.0
        turn = self.turn_for(self.last_offset)
        if not self.locked and abs(turn) < self.lock_degrees:
            self.locked = True
            self.locked_turn = turn
        if self.locked and abs(turn - self.last_turn) > self.jump_degrees:
            turn = self.locked_turn
        self.last_turn = turn
        return turn

    def next_heading(self, heading: float, max_deflection: float) -> float:
        """Rotate ``heading`` toward the target by at most ``max_deflection`` degrees."""

        desired = heading + self.next_turn()
        delta = min(abs(desired - heading), max_deflection)
        shortest = ((desired - heading + 540.0) % 360.0) - 180.0
        if shortest == 0:
            return normalise_degrees(heading)
        return normalise_degrees(heading + delta * math.copysign(1.0, shortest))


__all__ = ["HeadingLock", "PredictionConsumer", "normalise_degrees"]
