"""
Lifecycle Evaluator - Dormant / Awakened / Terminal

Pure decision layer. Given a decoded GhostRecord and the current unix time,
compute which instruction(s) would move the ghost forward. Nothing here
touches the chain; the scheduler hands the result to the ChainExecutor.

    DORMANT   (awakened=False, executed=False)
        now > last_heartbeat + interval + B      -> [AWAKEN]
    AWAKENED  (awakened=True,  executed=False)
        now > awakened_at + grace + B            -> [EXECUTE(0) .. EXECUTE(n-1)]
    TERMINAL  (executed=True)                    -> []

B is the drift buffer: a fixed tolerance for disagreement between the local
clock and cluster time. The two predicates require opposite values of
`awakened`, so at most one action class is ever proposed per record.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .record import GhostRecord


class LifecycleState(Enum):
    DORMANT = "dormant"
    AWAKENED = "awakened"
    TERMINAL = "terminal"


class ActionKind(Enum):
    AWAKEN = "awaken"
    EXECUTE = "execute"


@dataclass(frozen=True)
class PendingAction:
    """One instruction the executor should submit."""
    kind: ActionKind
    beneficiary_index: Optional[int] = None  # EXECUTE only
    overdue_seconds: int = 0                 # past the unbuffered deadline

    def __str__(self) -> str:
        if self.kind is ActionKind.EXECUTE:
            return f"Execute({self.beneficiary_index})"
        return "Awaken"


def classify(record: GhostRecord) -> LifecycleState:
    if record.executed:
        return LifecycleState.TERMINAL
    if record.awakened:
        return LifecycleState.AWAKENED
    return LifecycleState.DORMANT


def heartbeat_deadline(record: GhostRecord) -> int:
    return record.last_heartbeat + record.interval_seconds


def grace_deadline(record: GhostRecord) -> Optional[int]:
    if record.awakened_at is None:
        return None
    return record.awakened_at + record.grace_period_seconds


def evaluate(record: GhostRecord, now: int, drift_buffer: int) -> list[PendingAction]:
    """Actions that are due for this record right now (possibly none)."""
    state = classify(record)

    if state is LifecycleState.DORMANT:
        deadline = heartbeat_deadline(record)
        if now > deadline + drift_buffer:
            return [PendingAction(ActionKind.AWAKEN, overdue_seconds=now - deadline)]
        return []

    if state is LifecycleState.AWAKENED:
        deadline = grace_deadline(record)
        if deadline is not None and now > deadline + drift_buffer:
            return [
                PendingAction(ActionKind.EXECUTE, beneficiary_index=i, overdue_seconds=now - deadline)
                for i in range(record.beneficiary_count)
            ]
        return []

    return []


def seconds_until_due(record: GhostRecord, now: int) -> Optional[int]:
    """
    Seconds until the next unbuffered deadline of a live record.

    Dormant -> heartbeat deadline, awakened -> grace deadline.
    None for terminal records or an awakened record missing awakened_at.
    """
    state = classify(record)
    if state is LifecycleState.DORMANT:
        return heartbeat_deadline(record) - now
    if state is LifecycleState.AWAKENED:
        deadline = grace_deadline(record)
        return None if deadline is None else deadline - now
    return None
