"""Proactive behaviour: deciding when to speak unprompted."""

from emul_agent.proactive.interjection import (
    InterjectionScheduler,
    InterjectionSnapshot,
    derive_gaps,
    gap_statistics,
    simulate_action_indices,
)

__all__ = [
    "InterjectionScheduler",
    "InterjectionSnapshot",
    "derive_gaps",
    "gap_statistics",
    "simulate_action_indices",
]
