"""
Tests for the stuck-entity recovery sweep
"""
from datetime import timedelta

import pytest

from voca_ingestion.models.schemas import AudioJob, DocumentJob, EntityCategory, EntityStatus, utcnow
from voca_ingestion.services.recovery_service import RecoveryService


@pytest.fixture
def recovery(entity_store, job_queue):
    return RecoveryService(entity_store, job_queue, check_interval=60, unclaimed_grace_seconds=600)


def test_requeues_expired_leases(recovery, make_entity, job_queue):
    entity = make_entity(
        EntityCategory.DOCUMENT,
        status=EntityStatus.PROCESSING,
        claimed_until=utcnow() - timedelta(minutes=1),
        declared_media_type="application/pdf"
    )

    stats = recovery.run_sweep()

    assert stats["document"] == {"found": 1, "requeued": 1}
    queue_name, job = job_queue.sent[0]
    assert queue_name == "document"
    assert isinstance(job, DocumentJob)
    assert job.entity_id == entity.id
    assert job.declared_media_type == "application/pdf"


def test_requeues_old_pending_entities_on_audio_queue(recovery, make_entity, job_queue):
    entity = make_entity(EntityCategory.TRANSCRIPT, updated_at=utcnow() - timedelta(hours=1))

    recovery.run_sweep()

    assert len(job_queue.sent) == 1
    queue_name, job = job_queue.sent[0]
    assert queue_name == "audio"
    assert isinstance(job, AudioJob)
    assert job.source_ref == entity.source_ref


def test_leaves_fresh_and_live_entities_alone(recovery, make_entity, job_queue):
    make_entity(EntityCategory.RESUME)
    make_entity(
        EntityCategory.RESUME,
        status=EntityStatus.PROCESSING,
        claimed_until=utcnow() + timedelta(minutes=5)
    )
    make_entity(EntityCategory.RESUME, status=EntityStatus.READY, updated_at=utcnow() - timedelta(days=1))
    make_entity(
        EntityCategory.RESUME,
        status=EntityStatus.ERROR,
        error="corrupt",
        updated_at=utcnow() - timedelta(days=1)
    )

    stats = recovery.run_sweep()

    assert stats["resume"] == {"found": 0, "requeued": 0}
    assert job_queue.sent == []


def test_skips_categories_without_a_queue(recovery, make_entity, job_queue):
    del job_queue.queue_urls["document"]
    make_entity(EntityCategory.DOCUMENT, updated_at=utcnow() - timedelta(hours=1))

    stats = recovery.run_sweep()

    assert "document" not in stats
    assert job_queue.sent == []


def test_send_failure_is_counted(recovery, make_entity, job_queue):
    make_entity(EntityCategory.RESUME, updated_at=utcnow() - timedelta(hours=1))

    def failing_send(queue_name, job, delay_seconds=0):
        raise RuntimeError("queue unavailable")

    job_queue.send = failing_send

    stats = recovery.run_sweep()

    assert stats["resume"] == {"found": 1, "requeued": 0}


def test_background_sweep_starts_and_stops(recovery):
    recovery.start_background_sweep()
    recovery.stop_background_sweep(timeout=5)

    assert not recovery._thread.is_alive()
