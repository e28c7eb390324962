from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from proposal_builder.answers import DEFAULT_STEPS, AnswerDocument, Step
from proposal_builder.autosave import DraftSynchronizer, SaveOutcome, SaveStatus
from proposal_builder.outcomes import StoreError, Unauthorized
from proposal_builder.security import AuthContext
from proposal_builder.stores import AnswerStore, AnswerStoreError
from proposal_builder.wizard import WizardState

logger = logging.getLogger(__name__)


async def _load(
    store: AnswerStore,
    proposal_id: str,
    auth: AuthContext | None,
) -> AnswerDocument | Unauthorized | StoreError:
    try:
        if not await store.owns(auth, proposal_id):
            return Unauthorized()
        document = await store.get(proposal_id)
    except AnswerStoreError as exc:
        logger.warning("editor.load_failed", extra={"proposal_id": proposal_id, "error": str(exc)})
        return StoreError(message=str(exc))
    return document or AnswerDocument.empty()


class ProposalEditor:
    """One editing session: a wizard whose answer changes autosave in the background."""

    def __init__(
        self,
        store: AnswerStore,
        *,
        proposal_id: str,
        auth: AuthContext | None,
        document: AnswerDocument,
        steps: Sequence[Step] = DEFAULT_STEPS,
        delay_seconds: float | None = None,
    ) -> None:
        self._store = store
        self._auth = auth
        self._steps = tuple(steps)
        self._detach: Callable[[], None] | None = None
        self.synchronizer = DraftSynchronizer(
            store,
            proposal_id=proposal_id,
            auth=auth,
            delay_seconds=delay_seconds,
        )
        self.wizard = self._build_wizard(document)

    @classmethod
    async def open(
        cls,
        store: AnswerStore,
        proposal_id: str,
        auth: AuthContext | None,
        *,
        steps: Sequence[Step] = DEFAULT_STEPS,
        delay_seconds: float | None = None,
    ) -> "ProposalEditor | Unauthorized | StoreError":
        loaded = await _load(store, proposal_id, auth)
        if isinstance(loaded, (Unauthorized, StoreError)):
            return loaded
        return cls(
            store,
            proposal_id=proposal_id,
            auth=auth,
            document=loaded,
            steps=steps,
            delay_seconds=delay_seconds,
        )

    @property
    def proposal_id(self) -> str:
        return self.synchronizer.proposal_id

    @property
    def status(self) -> SaveStatus:
        return self.synchronizer.status

    def _build_wizard(self, document: AnswerDocument) -> WizardState:
        wizard = WizardState(self._steps, document=document)
        self._detach = wizard.subscribe(self._on_change)
        return wizard

    def _detach_wizard(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def _on_change(self, document: AnswerDocument) -> None:
        self.synchronizer.schedule_save(self.proposal_id, document)

    async def switch_to(self, proposal_id: str) -> None | Unauthorized | StoreError:
        # Detach and cancel first so the old answers can never land under the new id.
        self._detach_wizard()
        self.synchronizer.switch_proposal(proposal_id)
        loaded = await _load(self._store, proposal_id, self._auth)
        if isinstance(loaded, (Unauthorized, StoreError)):
            return loaded
        self.wizard = self._build_wizard(loaded)
        return None

    async def retry(self) -> SaveOutcome | None:
        return await self.synchronizer.retry()

    async def close(self) -> None:
        self._detach_wizard()
        await self.synchronizer.close()
