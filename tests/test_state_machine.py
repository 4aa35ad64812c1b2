"""Item lifecycle: transitions persisted on both status columns, no regression within a run."""
import pytest

from newsletter_intel.db.repositories import EmailRepo
from newsletter_intel.db.session import session_scope
from newsletter_intel.pipeline.errors import InvalidTransitionError
from newsletter_intel.pipeline.state_machine import ItemStateMachine, ItemStatus, check_transition


def _email(email_id):
    with session_scope() as session:
        return EmailRepo().get(session, email_id)


def test_check_transition_table():
    check_transition(ItemStatus.PENDING, ItemStatus.PROCESSING)
    check_transition(ItemStatus.PROCESSING, ItemStatus.COMPLETED)
    check_transition(ItemStatus.PROCESSING, ItemStatus.FAILED)
    for current, target in [
        (ItemStatus.PENDING, ItemStatus.COMPLETED),
        (ItemStatus.COMPLETED, ItemStatus.PROCESSING),
        (ItemStatus.FAILED, ItemStatus.PENDING),
        (ItemStatus.COMPLETED, ItemStatus.FAILED),
    ]:
        with pytest.raises(InvalidTransitionError):
            check_transition(current, target)


@pytest.mark.asyncio
async def test_start_then_complete_writes_both_columns(store, seed_emails):
    (email_id,) = seed_emails(1)
    machine = ItemStateMachine(store)

    await machine.start(_email(email_id))
    row = _email(email_id)
    assert row.processing_status == "processing"
    assert row.extraction_status == "processing"
    assert row.extraction_started_at is not None

    await machine.complete(email_id, 3)
    row = _email(email_id)
    assert row.processing_status == "completed"
    assert row.extraction_status == "completed"
    assert row.companies_extracted == 3
    assert row.extraction_completed_at is not None
    assert machine.state_of(email_id) is ItemStatus.COMPLETED


@pytest.mark.asyncio
async def test_fail_records_error(store, seed_emails):
    (email_id,) = seed_emails(1)
    machine = ItemStateMachine(store)
    await machine.start(_email(email_id))
    await machine.fail(email_id, "x" * 5000)
    row = _email(email_id)
    assert row.processing_status == "failed"
    assert row.extraction_status == "failed"
    assert len(row.extraction_error) == 4096


@pytest.mark.asyncio
async def test_complete_without_start_is_rejected(store, seed_emails):
    (email_id,) = seed_emails(1)
    machine = ItemStateMachine(store)
    with pytest.raises(InvalidTransitionError):
        await machine.complete(email_id, 0)
    assert _email(email_id).processing_status == "pending"


@pytest.mark.asyncio
async def test_terminal_item_cannot_regress_within_run(store, seed_emails):
    (email_id,) = seed_emails(1)
    machine = ItemStateMachine(store)
    stale = _email(email_id)
    await machine.start(stale)
    await machine.complete(email_id, 1)
    # The stale DTO still says pending; the machine remembers what it wrote
    with pytest.raises(InvalidTransitionError):
        await machine.start(stale)
    with pytest.raises(InvalidTransitionError):
        await machine.fail(email_id, "late failure")
    assert _email(email_id).processing_status == "completed"


@pytest.mark.asyncio
async def test_start_clears_previous_error(store, seed_emails):
    (email_id,) = seed_emails(1)
    with session_scope() as session:
        EmailRepo().update_status(session, email_id, {"extraction_error": "old failure"})
    machine = ItemStateMachine(store)
    await machine.start(_email(email_id))
    assert _email(email_id).extraction_error is None
