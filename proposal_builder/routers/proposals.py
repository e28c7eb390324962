from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from proposal_builder.answers import (
    DEFAULT_STEPS,
    AnswerDocument,
    AnswerValidationError,
    validate_against_steps,
)
from proposal_builder.db import get_session
from proposal_builder.models import Proposal
from proposal_builder.repositories import AnswersRepository, ProposalsRepository
from proposal_builder.schemas import (
    AnswersPayload,
    AnswersResponse,
    ProposalDetailResponse,
    ProposalResponse,
    ProposalUpdateRequest,
    ShareResponse,
)
from proposal_builder.security import AuthContext, get_current_user

router = APIRouter(prefix="/proposals", tags=["proposals"])
logger = logging.getLogger(__name__)


def _get_proposal_or_404(*, session: Session, auth: AuthContext, proposal_id: str) -> Proposal:
    proposal = ProposalsRepository(session).get(auth.user_id, proposal_id)
    if not proposal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proposal not found")
    return proposal


def _share_response(proposal: Proposal) -> ShareResponse:
    return ShareResponse(
        proposal_id=proposal.id,
        share_token=proposal.share_token,
        share_path=f"/share/{proposal.share_token}" if proposal.share_token else None,
    )


@router.get("/{proposal_id}", response_model=ProposalDetailResponse)
def get_proposal(
    proposal_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    proposal = _get_proposal_or_404(session=session, auth=auth, proposal_id=proposal_id)
    row = AnswersRepository(session).get(proposal.id)
    detail = ProposalDetailResponse.model_validate(proposal)
    detail.answers = row.answers if row is not None else None
    return detail


@router.patch("/{proposal_id}", response_model=ProposalResponse)
def update_proposal(
    proposal_id: str,
    payload: ProposalUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_proposal_or_404(session=session, auth=auth, proposal_id=proposal_id)
    fields = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None
    }
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide at least one of: name, status",
        )
    return ProposalsRepository(session).update(auth.user_id, proposal_id, **fields)


@router.get("/{proposal_id}/answers", response_model=AnswersResponse)
def get_answers(
    proposal_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_proposal_or_404(session=session, auth=auth, proposal_id=proposal_id)
    row = AnswersRepository(session).get(proposal_id)
    return AnswersResponse(proposal_id=proposal_id, answers=row.answers if row is not None else None)


@router.put("/{proposal_id}/answers", response_model=AnswersResponse)
def put_answers(
    proposal_id: str,
    payload: AnswersPayload,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_proposal_or_404(session=session, auth=auth, proposal_id=proposal_id)
    try:
        document = AnswerDocument.from_payload(payload.answers)
        validate_against_steps(document, DEFAULT_STEPS)
    except AnswerValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    row = AnswersRepository(session).upsert(proposal_id, document.to_payload())
    logger.info("answers.saved", extra={"proposal_id": proposal_id, "user_id": auth.user_id})
    return AnswersResponse(proposal_id=proposal_id, answers=row.answers)


@router.post("/{proposal_id}/share", response_model=ShareResponse)
def enable_sharing(
    proposal_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_proposal_or_404(session=session, auth=auth, proposal_id=proposal_id)
    proposal = ProposalsRepository(session).enable_sharing(auth.user_id, proposal_id)
    logger.info("share.enabled", extra={"proposal_id": proposal_id, "user_id": auth.user_id})
    return _share_response(proposal)


@router.delete("/{proposal_id}/share", response_model=ShareResponse)
def revoke_sharing(
    proposal_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_proposal_or_404(session=session, auth=auth, proposal_id=proposal_id)
    proposal = ProposalsRepository(session).revoke_sharing(auth.user_id, proposal_id)
    logger.info("share.revoked", extra={"proposal_id": proposal_id, "user_id": auth.user_id})
    return _share_response(proposal)
