"""
Trade lifecycle phases and their legal transitions.
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from loguru import logger

from execution.errors import InvalidTransition


class TradePhase(Enum):
    IDLE = "idle"
    MONITORING = "monitoring"
    ENTRY_ATTEMPT = "entry_attempt"
    POSITION_OPEN = "position_open"
    STOP_LOSS_ARMED = "stop_loss_armed"
    LIQUIDATING = "liquidating"
    CLOSED = "closed"
    ABORTED = "aborted"


TERMINAL_PHASES: FrozenSet[TradePhase] = frozenset({TradePhase.CLOSED, TradePhase.ABORTED})

# Phases during which capital is at risk. At most one trade system-wide.
OPEN_PHASES: FrozenSet[TradePhase] = frozenset({
    TradePhase.POSITION_OPEN,
    TradePhase.STOP_LOSS_ARMED,
    TradePhase.LIQUIDATING,
})

ALLOWED_TRANSITIONS: Dict[TradePhase, FrozenSet[TradePhase]] = {
    TradePhase.IDLE: frozenset({TradePhase.MONITORING}),
    TradePhase.MONITORING: frozenset({
        TradePhase.ENTRY_ATTEMPT, TradePhase.CLOSED, TradePhase.ABORTED,
    }),
    TradePhase.ENTRY_ATTEMPT: frozenset({
        TradePhase.POSITION_OPEN, TradePhase.CLOSED, TradePhase.ABORTED,
    }),
    TradePhase.POSITION_OPEN: frozenset({TradePhase.STOP_LOSS_ARMED, TradePhase.CLOSED}),
    TradePhase.STOP_LOSS_ARMED: frozenset({
        TradePhase.POSITION_OPEN, TradePhase.LIQUIDATING, TradePhase.CLOSED,
    }),
    TradePhase.LIQUIDATING: frozenset({TradePhase.CLOSED}),
    TradePhase.CLOSED: frozenset(),
    TradePhase.ABORTED: frozenset(),
}


class TradeState:
    """Current phase of one market attempt, with a transition log."""

    def __init__(self, market_slug: str):
        self.market_slug = market_slug
        self.phase = TradePhase.IDLE
        self.history: List[Tuple[TradePhase, TradePhase]] = []

    def transition(self, target: TradePhase) -> None:
        if target not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransition(
                f"{self.market_slug}: {self.phase.value} -> {target.value} is not allowed"
            )
        self.history.append((self.phase, target))
        logger.debug(f"{self.market_slug}: {self.phase.value} -> {target.value}")
        self.phase = target

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def has_open_position(self) -> bool:
        return self.phase in OPEN_PHASES
