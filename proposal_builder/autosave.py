from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from proposal_builder.answers import AnswerDocument
from proposal_builder.config import settings
from proposal_builder.outcomes import StoreError, Unauthorized, ValidationError
from proposal_builder.security import AuthContext
from proposal_builder.stores import AnswerStore, AnswerStoreError

logger = logging.getLogger(__name__)


class SaveStateEnum(str, Enum):
    idle = "idle"
    saving = "saving"
    saved = "saved"
    failed = "failed"


SaveFailure = Unauthorized | StoreError | ValidationError


@dataclass(frozen=True)
class SaveStatus:
    state: SaveStateEnum
    reason: SaveFailure | None = None

    @classmethod
    def idle(cls) -> "SaveStatus":
        return cls(state=SaveStateEnum.idle)

    @classmethod
    def saving(cls) -> "SaveStatus":
        return cls(state=SaveStateEnum.saving)

    @classmethod
    def saved(cls) -> "SaveStatus":
        return cls(state=SaveStateEnum.saved)

    @classmethod
    def failed(cls, reason: SaveFailure) -> "SaveStatus":
        return cls(state=SaveStateEnum.failed, reason=reason)

    @property
    def message(self) -> str:
        if self.state == SaveStateEnum.saving:
            return "Saving…"
        if self.state == SaveStateEnum.failed and self.reason is not None:
            return self.reason.message
        return "Saved" if self.state == SaveStateEnum.saved else ""


@dataclass(frozen=True)
class Saved:
    proposal_id: str
    document: AnswerDocument


@dataclass(frozen=True)
class SaveFailed:
    proposal_id: str
    reason: SaveFailure


SaveOutcome = Saved | SaveFailed
StatusListener = Callable[[SaveStatus], None]


class DraftSynchronizer:
    """
    Debounced autosave for one editing context.

    Every ``schedule_save`` replaces the single pending timer, so a burst of
    edits produces one upsert carrying the newest document once the quiet
    period has elapsed. Closing the synchronizer, or scheduling under another
    proposal id, cancels the pending timer so nothing is written under a stale
    key. Writes are serialized and always send the latest scheduled document.
    """

    def __init__(
        self,
        store: AnswerStore,
        *,
        proposal_id: str,
        auth: AuthContext | None,
        delay_seconds: float | None = None,
    ) -> None:
        self._store = store
        self._proposal_id = proposal_id
        self._auth = auth
        self._delay = settings.autosave_delay_seconds if delay_seconds is None else delay_seconds
        self._status = SaveStatus.idle()
        self._listeners: list[StatusListener] = []
        self._candidate: AnswerDocument | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._in_flight: asyncio.Task[SaveOutcome | None] | None = None
        # Bumped on rebind/close; results from an older context are dropped.
        self._context = 0
        self._closed = False

    @property
    def proposal_id(self) -> str:
        return self._proposal_id

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def candidate(self) -> AnswerDocument | None:
        return self._candidate

    @property
    def has_pending_save(self) -> bool:
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def schedule_save(self, proposal_id: str, document: AnswerDocument) -> None:
        if self._closed:
            logger.debug("autosave.schedule_ignored_closed", extra={"proposal_id": proposal_id})
            return
        if proposal_id != self._proposal_id:
            self.switch_proposal(proposal_id)
        self._candidate = document
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay, self._on_timer, self._context, proposal_id)

    def switch_proposal(self, proposal_id: str) -> None:
        if proposal_id == self._proposal_id:
            return
        logger.info(
            "autosave.context_switched",
            extra={"from_proposal_id": self._proposal_id, "to_proposal_id": proposal_id},
        )
        self._cancel_timer()
        self._context += 1
        self._proposal_id = proposal_id
        self._candidate = None
        self._set_status(SaveStatus.idle())

    async def retry(self) -> SaveOutcome | None:
        """Save the latest document now, whether or not a save is pending."""
        if self._closed or self._candidate is None:
            return None
        self._cancel_timer()
        return await self._start_write(self._context, self._proposal_id)

    async def flush(self) -> SaveOutcome | None:
        """Run the pending save now instead of waiting out the quiet period."""
        if self._timer is None:
            return None
        return await self.retry()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        self._context += 1
        in_flight = self._in_flight
        if in_flight is not None and not in_flight.done():
            await in_flight

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, context: int, proposal_id: str) -> None:
        self._timer = None
        if self._closed or context != self._context or proposal_id != self._proposal_id:
            return
        self._start_write(context, proposal_id)

    def _start_write(self, context: int, proposal_id: str) -> asyncio.Task[SaveOutcome | None]:
        previous = self._in_flight
        task = asyncio.ensure_future(self._write_after(previous, context, proposal_id))
        self._in_flight = task
        return task

    async def _write_after(
        self,
        previous: asyncio.Task[SaveOutcome | None] | None,
        context: int,
        proposal_id: str,
    ) -> SaveOutcome | None:
        if previous is not None and not previous.done():
            await previous
        document = self._candidate if context == self._context else None
        if document is None:
            logger.debug("autosave.superseded", extra={"proposal_id": proposal_id})
            return None
        return await self._write(context, proposal_id, document)

    async def _write(self, context: int, proposal_id: str, document: AnswerDocument) -> SaveOutcome:
        self._set_status(SaveStatus.saving(), context)
        try:
            if not await self._store.owns(self._auth, proposal_id):
                return self._fail(context, proposal_id, Unauthorized())
            await self._store.upsert(proposal_id, document)
        except AnswerStoreError as exc:
            if exc.status_code == 422:
                return self._fail(context, proposal_id, ValidationError(message=str(exc)))
            return self._fail(context, proposal_id, StoreError(message=str(exc)))
        except Exception as exc:
            logger.exception("autosave.unexpected_error", extra={"proposal_id": proposal_id})
            return self._fail(context, proposal_id, StoreError(message=f"Unexpected error while saving: {exc}"))
        self._set_status(SaveStatus.saved(), context)
        logger.debug("autosave.saved", extra={"proposal_id": proposal_id})
        return Saved(proposal_id=proposal_id, document=document)

    def _fail(self, context: int, proposal_id: str, reason: SaveFailure) -> SaveFailed:
        logger.warning(
            "autosave.failed",
            extra={"proposal_id": proposal_id, "reason": reason.message},
        )
        self._set_status(SaveStatus.failed(reason), context)
        return SaveFailed(proposal_id=proposal_id, reason=reason)

    def _set_status(self, status: SaveStatus, context: int | None = None) -> None:
        if context is not None and context != self._context:
            return
        self._status = status
        for listener in list(self._listeners):
            listener(status)
