from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from proposal_builder.db import get_session
from proposal_builder.models import Client
from proposal_builder.repositories import ClientsRepository, ProposalsRepository
from proposal_builder.schemas import (
    ClientCreateRequest,
    ClientResponse,
    ProposalCreateRequest,
    ProposalResponse,
)
from proposal_builder.security import AuthContext, get_current_user

router = APIRouter(prefix="/clients", tags=["clients"])


def _get_client_or_404(*, session: Session, auth: AuthContext, client_id: str) -> Client:
    client = ClientsRepository(session).get(auth.user_id, client_id)
    if not client:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.get("", response_model=list[ClientResponse])
def list_clients(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ClientsRepository(session).list(auth.user_id)


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ClientsRepository(session).create(auth.user_id, payload.name)


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return _get_client_or_404(session=session, auth=auth, client_id=client_id)


@router.delete("/{client_id}", response_model=ClientResponse)
def archive_client(
    client_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    client = ClientsRepository(session).archive(auth.user_id, client_id)
    if not client:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.get("/{client_id}/proposals", response_model=list[ProposalResponse])
def list_client_proposals(
    client_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_client_or_404(session=session, auth=auth, client_id=client_id)
    return ProposalsRepository(session).list_for_client(auth.user_id, client_id)


@router.post(
    "/{client_id}/proposals",
    response_model=ProposalResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_client_proposal(
    client_id: str,
    payload: ProposalCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _get_client_or_404(session=session, auth=auth, client_id=client_id)
    return ProposalsRepository(session).create(auth.user_id, client_id, payload.name)
