"""
Tests for the entity status state machine
"""
from datetime import timedelta

import pytest

from voca_ingestion.exceptions import InvalidTransitionException, is_retryable
from voca_ingestion.models.schemas import Entity, EntityCategory, EntityStatus, utcnow
from voca_ingestion.models.state_machine import (
    STATUS_ORDER,
    TRANSITIONS,
    JobEvent,
    active_statuses,
    claim_target,
    is_terminal,
    next_status
)


ALL_PAIRS = [
    (category, status, event)
    for category in EntityCategory
    for status in EntityStatus
    for event in JobEvent
]


@pytest.mark.parametrize("category,status,event", ALL_PAIRS)
def test_every_state_event_pair(category, status, event):
    legal = TRANSITIONS[category]
    if (status, event) in legal:
        target = next_status(category, status, event)
        assert target == legal[(status, event)]
        order = STATUS_ORDER[category]
        # monotonic: never back to an earlier state
        if target != EntityStatus.ERROR:
            assert order.index(target) > order.index(status)
        assert not is_terminal(status)
    else:
        with pytest.raises(InvalidTransitionException) as exc_info:
            next_status(category, status, event)
        assert not is_retryable(exc_info.value)


@pytest.mark.parametrize("category", [EntityCategory.RESUME, EntityCategory.DOCUMENT])
def test_single_pass_happy_path(category):
    status = next_status(category, EntityStatus.PENDING, JobEvent.CLAIM)
    assert status == EntityStatus.PROCESSING
    assert next_status(category, status, JobEvent.COMPLETE) == EntityStatus.READY


def test_audio_happy_path():
    category = EntityCategory.TRANSCRIPT
    status = EntityStatus.PENDING
    seen = []
    for event in (JobEvent.CLAIM, JobEvent.TRANSCRIBED, JobEvent.SUMMARIZED, JobEvent.COMPLETE):
        status = next_status(category, status, event)
        seen.append(status)
    assert seen == [
        EntityStatus.TRANSCRIBING,
        EntityStatus.SUMMARIZING,
        EntityStatus.EMBEDDING,
        EntityStatus.READY,
    ]


@pytest.mark.parametrize("status", active_statuses(EntityCategory.TRANSCRIPT))
def test_audio_can_fail_from_every_active_state(status):
    assert next_status(EntityCategory.TRANSCRIPT, status, JobEvent.FAIL) == EntityStatus.ERROR


def test_terminal_states_have_no_exits():
    for category, table in TRANSITIONS.items():
        for (status, _event) in table:
            assert not is_terminal(status)


def _entity(status, claimed_until=None, error=None):
    return Entity(
        id="e1",
        category=EntityCategory.TRANSCRIPT,
        owner_id="u1",
        source_ref="audio/u1/x.wav",
        status=status,
        claimed_until=claimed_until,
        error=error
    )


def test_claim_pending_moves_to_first_active_state():
    assert claim_target(_entity(EntityStatus.PENDING), utcnow()) == EntityStatus.TRANSCRIBING


def test_claim_expired_lease_keeps_status():
    now = utcnow()
    entity = _entity(EntityStatus.SUMMARIZING, claimed_until=now - timedelta(seconds=1))
    assert claim_target(entity, now) == EntityStatus.SUMMARIZING


def test_claim_live_lease_is_refused():
    now = utcnow()
    entity = _entity(EntityStatus.TRANSCRIBING, claimed_until=now + timedelta(minutes=5))
    assert claim_target(entity, now) is None


@pytest.mark.parametrize("status,error", [(EntityStatus.READY, None), (EntityStatus.ERROR, "boom")])
def test_claim_terminal_is_refused(status, error):
    assert claim_target(_entity(status, error=error), utcnow()) is None
