"""Unprompted-interjection scheduling with error diffusion ("blue noise")."""

from __future__ import annotations

import math
import random
import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class InterjectionSnapshot:
    """Read-only copy of a scheduler's state."""

    chance: float
    min_gap: int
    max_gap: int
    event_count: int
    last_action_index: int
    forced: bool
    error_accumulator: float


def derive_gaps(chance: float) -> tuple[int, int]:
    """Return (min_gap, max_gap) around the nominal spacing of ``1 / chance``."""
    avg_gap = int(1.0 / chance)
    return avg_gap // 2, avg_gap * 2


class InterjectionScheduler:
    """
    Decide, one event at a time, whether the assistant should act unprompted.

    Independent coin flips per message cluster and leave long silences. This
    scheduler carries the probability "owed" by every suppressed event forward
    in an error accumulator and pays it back on later events, so actions land
    at a long-run rate of ``chance`` with evenly spread gaps. ``min_gap`` and
    ``max_gap`` put a soft floor and a hard ceiling around the nominal spacing.

    All state sits behind one lock; every decision is a short critical section.
    """

    def __init__(self, chance: float, rng: random.Random | None = None):
        if not (0.0 < chance < 1.0) or math.isnan(chance):
            raise ValueError(f"Interjection chance must be in (0, 1), got {chance!r}")
        self._chance = float(chance)
        self._min_gap, self._max_gap = derive_gaps(self._chance)
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._event_count = 0
        self._last_action_index = 0
        self._forced = False
        self._error_accumulator = 0.0

    @property
    def chance(self) -> float:
        return self._chance

    @property
    def min_gap(self) -> int:
        return self._min_gap

    @property
    def max_gap(self) -> int:
        return self._max_gap

    def should_act(self) -> bool:
        """Register one event and return True if the assistant should act on it."""
        with self._lock:
            self._event_count += 1

            if self._forced:
                self._forced = False
                self._record_action()
                return True

            gap = self._event_count - self._last_action_index
            if gap < self._min_gap:
                self._error_accumulator += self._chance
                return False

            if gap >= self._max_gap:
                self._record_action()
                return True

            effective = self._chance + self._error_accumulator
            if self._rng.random() < effective:
                self._record_action()
                return True

            self._error_accumulator += self._chance
            return False

    def force_next(self) -> None:
        """Make the next ``should_act`` call return True (one-shot)."""
        with self._lock:
            self._forced = True

    def snapshot(self) -> InterjectionSnapshot:
        with self._lock:
            return InterjectionSnapshot(
                chance=self._chance,
                min_gap=self._min_gap,
                max_gap=self._max_gap,
                event_count=self._event_count,
                last_action_index=self._last_action_index,
                forced=self._forced,
                error_accumulator=self._error_accumulator,
            )

    def _record_action(self) -> None:
        # Caller holds the lock.
        self._last_action_index = self._event_count
        self._error_accumulator += self._chance - 1.0


def simulate_action_indices(scheduler: InterjectionScheduler, events: int) -> list[int]:
    """Feed ``events`` ticks into ``scheduler`` and return the indices it acted on."""
    return [index for index in range(max(0, int(events))) if scheduler.should_act()]


def gap_statistics(action_indices: list[int]) -> dict[str, float]:
    """Summarise inter-action gaps: count, min, max, mean, std and lag-1 autocorrelation."""
    gaps = [b - a for a, b in zip(action_indices, action_indices[1:])]
    if not gaps:
        return {"actions": float(len(action_indices)), "gaps": 0.0}

    mean = sum(gaps) / len(gaps)
    variance = sum((gap - mean) ** 2 for gap in gaps) / len(gaps)
    autocorrelation = 0.0
    if len(gaps) > 1 and variance > 0:
        lagged = sum((gaps[i] - mean) * (gaps[i + 1] - mean) for i in range(len(gaps) - 1))
        autocorrelation = lagged / ((len(gaps) - 1) * variance)

    return {
        "actions": float(len(action_indices)),
        "gaps": float(len(gaps)),
        "min_gap": float(min(gaps)),
        "max_gap": float(max(gaps)),
        "mean_gap": mean,
        "std_gap": math.sqrt(variance),
        "lag1_autocorrelation": autocorrelation,
    }
