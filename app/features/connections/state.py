# Connections Feature - Status transitions

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet
from app.shared.exceptions import ConflictException


class ConnectionStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


TRANSITIONS: Dict[ConnectionStatus, FrozenSet[ConnectionStatus]] = {
    ConnectionStatus.PENDING: frozenset({ConnectionStatus.ACTIVE, ConnectionStatus.REVOKED}),
    ConnectionStatus.ACTIVE: frozenset({ConnectionStatus.REVOKED}),
    ConnectionStatus.REVOKED: frozenset({ConnectionStatus.PENDING}),
}


def _rejection_message(current: ConnectionStatus, target: ConnectionStatus) -> str:
    if target == ConnectionStatus.PENDING:
        if current == ConnectionStatus.ACTIVE:
            return "Access already granted."
        return "Access request already pending."
    if target == ConnectionStatus.REVOKED:
        return "Access already revoked."
    return f"Request is not in PENDING state (current state: {current.value})."


def can_transition(current: ConnectionStatus, target: ConnectionStatus) -> bool:
    return target in TRANSITIONS[current]


@dataclass(frozen=True)
class ConnectionTransition:
    """
    A validated move between two connection statuses.

    Constructing a transition that is not in TRANSITIONS raises
    ConflictException, so holding an instance means the move is allowed.
    """

    current: ConnectionStatus
    target: ConnectionStatus

    def __post_init__(self):
        if not can_transition(self.current, self.target):
            raise ConflictException(_rejection_message(self.current, self.target))
