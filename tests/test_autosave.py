from __future__ import annotations

import asyncio

from proposal_builder.answers import AnswerDocument, TextAnswer
from proposal_builder.autosave import DraftSynchronizer, SaveFailed, Saved, SaveStateEnum, SaveStatus
from proposal_builder.outcomes import StoreError, Unauthorized, ValidationError

DELAY = 0.2


def _doc(name: str) -> AnswerDocument:
    return AnswerDocument.empty().with_answer("businessName", TextAnswer(value=name))


def test_default_delay_comes_from_settings(fake_store, auth):
    synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth)

    assert synchronizer._delay == 0.6
    assert synchronizer.status == SaveStatus.idle()


def test_burst_of_edits_is_coalesced_into_one_write_of_the_final_document(fake_store, auth):
    statuses: list[SaveStatus] = []

    async def scenario() -> None:
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.subscribe(statuses.append)
        for name in ["A", "Ac", "Acm", "Acme"]:
            synchronizer.schedule_save("p1", _doc(name))
            await asyncio.sleep(0.01)
        assert fake_store.upserts == []
        assert synchronizer.has_pending_save
        await asyncio.sleep(DELAY * 3)
        assert synchronizer.status.state == SaveStateEnum.saved

    asyncio.run(scenario())

    assert fake_store.upserts == [("p1", _doc("Acme"))]
    assert [status.state for status in statuses] == [SaveStateEnum.saving, SaveStateEnum.saved]


def test_close_before_quiet_period_cancels_the_write(fake_store, auth):
    async def scenario() -> DraftSynchronizer:
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("Acme"))
        await synchronizer.close()
        await asyncio.sleep(DELAY * 2)
        synchronizer.schedule_save("p1", _doc("Ignored"))
        await asyncio.sleep(DELAY * 2)
        return synchronizer

    synchronizer = asyncio.run(scenario())

    assert fake_store.upserts == []
    assert synchronizer.closed
    assert synchronizer.status == SaveStatus.idle()


def test_changing_proposal_id_cancels_the_pending_save_for_the_old_one(fake_store, auth):
    async def scenario() -> DraftSynchronizer:
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("For p1"))
        await asyncio.sleep(0.01)
        synchronizer.schedule_save("p2", _doc("For p2"))
        await asyncio.sleep(DELAY * 3)
        return synchronizer

    synchronizer = asyncio.run(scenario())

    assert fake_store.upserts == [("p2", _doc("For p2"))]
    assert synchronizer.proposal_id == "p2"


def test_switch_proposal_drops_the_pending_document(fake_store, auth):
    async def scenario() -> DraftSynchronizer:
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("For p1"))
        synchronizer.switch_proposal("p2")
        await asyncio.sleep(DELAY * 2)
        return synchronizer

    synchronizer = asyncio.run(scenario())

    assert fake_store.upserts == []
    assert synchronizer.candidate is None
    assert not synchronizer.has_pending_save


def test_save_fails_unauthorized_when_session_no_longer_owns_proposal(fake_store, auth):
    fake_store.owned = {"someone-elses"}

    async def scenario() -> DraftSynchronizer:
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("Acme"))
        await asyncio.sleep(DELAY * 3)
        return synchronizer

    synchronizer = asyncio.run(scenario())

    assert fake_store.upserts == []
    assert synchronizer.status.state == SaveStateEnum.failed
    assert isinstance(synchronizer.status.reason, Unauthorized)


def test_save_without_session_is_unauthorized(fake_store):
    async def scenario():
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=None, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("Acme"))
        return await synchronizer.flush()

    outcome = asyncio.run(scenario())

    assert isinstance(outcome, SaveFailed)
    assert isinstance(outcome.reason, Unauthorized)
    assert fake_store.upserts == []


def test_failed_save_keeps_document_and_retry_persists_it(fake_store, auth):
    fake_store.fail_with = "database unavailable"

    async def scenario():
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("Acme"))
        await asyncio.sleep(DELAY * 3)
        failed_status = synchronizer.status
        candidate = synchronizer.candidate
        fake_store.fail_with = None
        outcome = await synchronizer.retry()
        return failed_status, candidate, outcome, synchronizer.status

    failed_status, candidate, outcome, final_status = asyncio.run(scenario())

    assert failed_status.state == SaveStateEnum.failed
    assert failed_status.reason == StoreError(message="database unavailable")
    assert failed_status.message == "database unavailable"
    assert candidate == _doc("Acme")
    assert outcome == Saved(proposal_id="p1", document=_doc("Acme"))
    assert final_status == SaveStatus.saved()
    assert fake_store.documents["p1"] == _doc("Acme")


def test_flush_saves_immediately_and_is_noop_without_pending_save(fake_store, auth):
    async def scenario():
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=60)
        synchronizer.schedule_save("p1", _doc("Acme"))
        first = await synchronizer.flush()
        second = await synchronizer.flush()
        return synchronizer, first, second

    synchronizer, first, second = asyncio.run(scenario())

    assert isinstance(first, Saved)
    assert second is None
    assert not synchronizer.has_pending_save
    assert fake_store.upserts == [("p1", _doc("Acme"))]


def test_retry_without_any_edit_does_nothing(fake_store, auth):
    async def scenario():
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        return await synchronizer.retry()

    assert asyncio.run(scenario()) is None
    assert fake_store.upserts == []


def test_writes_are_serialized_and_end_with_latest_document(fake_store, auth):
    fake_store.upsert_delay = 0.1

    async def scenario() -> None:
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=0)
        synchronizer.schedule_save("p1", _doc("First"))
        await asyncio.sleep(0.02)
        synchronizer.schedule_save("p1", _doc("Second"))
        await asyncio.sleep(0.5)

    asyncio.run(scenario())

    assert fake_store.upserts == [("p1", _doc("First")), ("p1", _doc("Second"))]
    assert fake_store.documents["p1"] == _doc("Second")


def test_rejected_document_is_reported_as_validation_failure(fake_store, auth):
    fake_store.fail_with = "Answer 'services' must be a list of options"
    fake_store.fail_status = 422

    async def scenario():
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("Acme"))
        return await synchronizer.flush()

    outcome = asyncio.run(scenario())

    assert isinstance(outcome, SaveFailed)
    assert outcome.reason == ValidationError(message="Answer 'services' must be a list of options")


def test_unexpected_store_exception_still_ends_in_failed_status(fake_store, auth):
    class ExplodingStore(type(fake_store)):
        async def upsert(self, proposal_id, document):
            raise LookupError("driver blew up")

    store = ExplodingStore()

    async def scenario():
        synchronizer = DraftSynchronizer(store, proposal_id="p1", auth=auth, delay_seconds=DELAY)
        synchronizer.schedule_save("p1", _doc("Acme"))
        await asyncio.sleep(DELAY * 3)
        return synchronizer

    synchronizer = asyncio.run(scenario())

    assert synchronizer.status.state == SaveStateEnum.failed
    assert isinstance(synchronizer.status.reason, StoreError)
    assert "driver blew up" in synchronizer.status.message
    assert synchronizer.candidate == _doc("Acme")


def test_write_queued_behind_a_proposal_switch_is_dropped_quietly(fake_store, auth):
    fake_store.upsert_delay = 0.1

    async def scenario():
        synchronizer = DraftSynchronizer(fake_store, proposal_id="p1", auth=auth, delay_seconds=0)
        synchronizer.schedule_save("p1", _doc("First"))
        await asyncio.sleep(0.02)
        queued = synchronizer._start_write(synchronizer._context, "p1")
        synchronizer.switch_proposal("p2")
        return await queued, synchronizer.status

    outcome, status = asyncio.run(scenario())

    assert outcome is None
    assert status == SaveStatus.idle()
    assert fake_store.upserts == [("p1", _doc("First"))]
