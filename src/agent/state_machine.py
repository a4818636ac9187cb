# src/agent/state_machine.py - v1
"""Phase graph of a run.

THINK -> RETRIEVE -> DECIDE -> [PAY -> VERIFY -> UNLOCK] -> BUILD -> COMPLETE,
with ERROR reachable from every phase except ERROR itself. DECIDE goes
straight to BUILD when nothing needs to be paid for.
"""

from __future__ import annotations

from collections.abc import Sequence

from paygent.core.errors import InvalidTransitionError
from paygent.core.models import Phase

PAID_PHASES: tuple[Phase, ...] = (Phase.PAY, Phase.VERIFY, Phase.UNLOCK)

_NEXT: dict[Phase | None, frozenset[Phase]] = {
    None: frozenset({Phase.THINK}),
    Phase.THINK: frozenset({Phase.RETRIEVE}),
    Phase.RETRIEVE: frozenset({Phase.DECIDE}),
    Phase.DECIDE: frozenset({Phase.PAY, Phase.BUILD}),
    Phase.PAY: frozenset({Phase.VERIFY}),
    Phase.VERIFY: frozenset({Phase.UNLOCK}),
    Phase.UNLOCK: frozenset({Phase.BUILD}),
    Phase.BUILD: frozenset({Phase.COMPLETE}),
    Phase.COMPLETE: frozenset(),
    Phase.ERROR: frozenset(),
}


def is_terminal(phase: Phase | None) -> bool:
    return phase in (Phase.COMPLETE, Phase.ERROR)


def allowed_next(current: Phase | None) -> frozenset[Phase]:
    """Phases reachable from ``current`` (``None`` = not started)."""
    if current is Phase.ERROR:
        return frozenset()
    return _NEXT[current] | {Phase.ERROR}


def validate_transition(current: Phase | None, requested: Phase) -> None:
    """Raise InvalidTransitionError unless ``current -> requested`` is an edge."""
    if requested not in allowed_next(current):
        raise InvalidTransitionError(current, requested)


def is_valid_path(phases: Sequence[Phase]) -> bool:
    """Whether ``phases`` is a walk of the graph starting from the initial state."""
    current: Phase | None = None
    for phase in phases:
        if phase not in allowed_next(current):
            return False
        current = phase
    return True
