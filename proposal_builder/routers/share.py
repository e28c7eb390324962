from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import ORJSONResponse

from proposal_builder.outcomes import NotFound, StoreError
from proposal_builder.sharing import SnapshotComposer
from proposal_builder.stores import SqlAnswerStore

router = APIRouter(prefix="/share", tags=["share"])
logger = logging.getLogger(__name__)


def get_snapshot_composer() -> SnapshotComposer:
    store = SqlAnswerStore()
    return SnapshotComposer(proposals=store, answers=store)


@router.get("/{token}")
async def get_shared_proposal(
    token: str,
    composer: SnapshotComposer = Depends(get_snapshot_composer),
):
    outcome = await composer.resolve(token)
    if isinstance(outcome, NotFound):
        return ORJSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": outcome.message})
    if isinstance(outcome, StoreError):
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": outcome.message},
        )
    logger.debug("share.resolved", extra={"proposal_id": outcome.proposal.id})
    return outcome.to_payload()
