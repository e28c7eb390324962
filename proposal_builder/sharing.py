from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from proposal_builder.answers import AnswerDocument
from proposal_builder.models import Proposal
from proposal_builder.outcomes import NotFound, StoreError
from proposal_builder.stores import AnswerStore, AnswerStoreError, ShareLookup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SharedProposal:
    id: str
    name: str
    status: str
    created_at: datetime
    updated_at: datetime
    share_token: str

    @classmethod
    def from_model(cls, proposal: Proposal) -> "SharedProposal":
        return cls(
            id=proposal.id,
            name=proposal.name,
            status=proposal.status,
            created_at=proposal.created_at,
            updated_at=proposal.updated_at,
            share_token=proposal.share_token or "",
        )


@dataclass(frozen=True)
class ShareSnapshot:
    proposal: SharedProposal
    answers: AnswerDocument | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "proposal": {
                "id": self.proposal.id,
                "name": self.proposal.name,
                "status": self.proposal.status,
                "created_at": self.proposal.created_at,
                "updated_at": self.proposal.updated_at,
                "share_token": self.proposal.share_token,
                "answers": self.answers.to_payload() if self.answers is not None else None,
            }
        }


class SnapshotComposer:
    """
    Builds the public, read-only view of a shared proposal.

    The proposal and its answers are read independently with no transaction
    between them, so the answers may be slightly newer or older than the
    proposal's ``updated_at``. Holding the token is the only credential.
    """

    def __init__(self, proposals: ShareLookup, answers: AnswerStore) -> None:
        self._proposals = proposals
        self._answers = answers

    async def resolve(self, token: str) -> ShareSnapshot | NotFound | StoreError:
        if not token or not token.strip():
            return NotFound()

        try:
            matches = await self._proposals.find_by_share_token(token)
        except AnswerStoreError as exc:
            logger.error("share.lookup_failed", extra={"error": str(exc)})
            return StoreError(message=str(exc))

        if not matches:
            return NotFound()
        if len(matches) > 1:
            logger.error("share.duplicate_token", extra={"matches": len(matches)})
            return StoreError(message="Share token matches more than one proposal")

        proposal = SharedProposal.from_model(matches[0])
        try:
            answers = await self._answers.get(proposal.id)
        except AnswerStoreError as exc:
            logger.error(
                "share.answers_failed",
                extra={"proposal_id": proposal.id, "error": str(exc)},
            )
            return StoreError(message=str(exc))

        return ShareSnapshot(proposal=proposal, answers=answers)
