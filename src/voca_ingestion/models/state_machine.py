"""
Status state machine for ingestable entities

Resume / document:
    pending -> processing -> ready | error

Transcript (audio):
    pending -> transcribing -> summarizing -> embedding -> ready | error

Transitions only move forward. ``ready`` and ``error`` are terminal.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .schemas import Entity, EntityCategory, EntityStatus
from ..exceptions import InvalidTransitionException


class JobEvent(str, Enum):
    """Events that move an entity between states"""
    CLAIM = "claim"
    TRANSCRIBED = "transcribed"
    SUMMARIZED = "summarized"
    COMPLETE = "complete"
    FAIL = "fail"


_SINGLE_PASS = {
    (EntityStatus.PENDING, JobEvent.CLAIM): EntityStatus.PROCESSING,
    (EntityStatus.PROCESSING, JobEvent.COMPLETE): EntityStatus.READY,
    (EntityStatus.PROCESSING, JobEvent.FAIL): EntityStatus.ERROR,
}

_AUDIO = {
    (EntityStatus.PENDING, JobEvent.CLAIM): EntityStatus.TRANSCRIBING,
    (EntityStatus.TRANSCRIBING, JobEvent.TRANSCRIBED): EntityStatus.SUMMARIZING,
    (EntityStatus.SUMMARIZING, JobEvent.SUMMARIZED): EntityStatus.EMBEDDING,
    (EntityStatus.EMBEDDING, JobEvent.COMPLETE): EntityStatus.READY,
    (EntityStatus.TRANSCRIBING, JobEvent.FAIL): EntityStatus.ERROR,
    (EntityStatus.SUMMARIZING, JobEvent.FAIL): EntityStatus.ERROR,
    (EntityStatus.EMBEDDING, JobEvent.FAIL): EntityStatus.ERROR,
}

TRANSITIONS: Dict[EntityCategory, Dict[Tuple[EntityStatus, JobEvent], EntityStatus]] = {
    EntityCategory.RESUME: _SINGLE_PASS,
    EntityCategory.DOCUMENT: _SINGLE_PASS,
    EntityCategory.TRANSCRIPT: _AUDIO,
}

# Forward order of the states each category can visit
STATUS_ORDER: Dict[EntityCategory, List[EntityStatus]] = {
    EntityCategory.RESUME: [EntityStatus.PENDING, EntityStatus.PROCESSING, EntityStatus.READY],
    EntityCategory.DOCUMENT: [EntityStatus.PENDING, EntityStatus.PROCESSING, EntityStatus.READY],
    EntityCategory.TRANSCRIPT: [
        EntityStatus.PENDING,
        EntityStatus.TRANSCRIBING,
        EntityStatus.SUMMARIZING,
        EntityStatus.EMBEDDING,
        EntityStatus.READY,
    ],
}

TERMINAL_STATUSES = frozenset({EntityStatus.READY, EntityStatus.ERROR})


def is_terminal(status: EntityStatus) -> bool:
    return status in TERMINAL_STATUSES


def active_statuses(category: EntityCategory) -> List[EntityStatus]:
    """Non-terminal states a worker holds an entity in while it runs"""
    return [
        status for status in STATUS_ORDER[category]
        if status != EntityStatus.PENDING and not is_terminal(status)
    ]


def can_transition(category: EntityCategory, status: EntityStatus, event: JobEvent) -> bool:
    return (status, event) in TRANSITIONS[category]


def next_status(category: EntityCategory, status: EntityStatus, event: JobEvent) -> EntityStatus:
    """
    Resolve the state reached by applying ``event`` in ``status``

    Args:
        category: Entity category (selects the transition table)
        status: Current status
        event: Event to apply

    Returns:
        EntityStatus: The new status

    Raises:
        InvalidTransitionException: If the table has no such transition
    """
    try:
        return TRANSITIONS[category][(status, event)]
    except KeyError:
        raise InvalidTransitionException(
            f"Illegal transition for {category.value}: {status.value} --{event.value}-->"
        )


def claim_target(entity: Entity, now: datetime) -> Optional[EntityStatus]:
    """
    Status a worker should write when claiming ``entity``

    A pending entity is claimed through the CLAIM transition. An entity left in an
    active state by a crashed or failed attempt can be reclaimed once its lease has
    expired; its status is kept so the state machine never moves backwards.

    Returns:
        EntityStatus or None: None means the entity is not claimable (terminal,
        or another worker holds a live lease)
    """
    if entity.status == EntityStatus.PENDING:
        return next_status(entity.category, entity.status, JobEvent.CLAIM)
    if is_terminal(entity.status):
        return None
    if entity.status in active_statuses(entity.category) and entity.lease_expired(now):
        return entity.status
    return None
