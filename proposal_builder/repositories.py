from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from proposal_builder.config import settings
from proposal_builder.models import Client, Proposal, ProposalAnswers


class ClientsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Client]:
        stmt = (
            select(Client)
            .where(Client.user_id == user_id, Client.archived.is_(False))
            .order_by(Client.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, user_id: str, client_id: str) -> Optional[Client]:
        stmt = select(Client).where(Client.user_id == user_id, Client.id == client_id)
        return self.session.scalars(stmt).first()

    def create(self, user_id: str, name: str) -> Client:
        client = Client(user_id=user_id, name=name)
        self.session.add(client)
        self.session.commit()
        self.session.refresh(client)
        return client

    def archive(self, user_id: str, client_id: str) -> Optional[Client]:
        client = self.get(user_id, client_id)
        if not client:
            return None
        client.archived = True
        self.session.commit()
        self.session.refresh(client)
        return client


class ProposalsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_client(self, user_id: str, client_id: str, limit: int = 50, offset: int = 0) -> List[Proposal]:
        stmt = (
            select(Proposal)
            .where(Proposal.user_id == user_id, Proposal.client_id == client_id)
            .order_by(Proposal.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, user_id: str, proposal_id: str) -> Optional[Proposal]:
        stmt = select(Proposal).where(Proposal.user_id == user_id, Proposal.id == proposal_id)
        return self.session.scalars(stmt).first()

    def create(self, user_id: str, client_id: str, name: str, status: str = "draft") -> Proposal:
        proposal = Proposal(user_id=user_id, client_id=client_id, name=name, status=status)
        self.session.add(proposal)
        self.session.commit()
        self.session.refresh(proposal)
        return proposal

    def update(self, user_id: str, proposal_id: str, **fields: Any) -> Optional[Proposal]:
        proposal = self.get(user_id, proposal_id)
        if not proposal:
            return None
        for key, value in fields.items():
            setattr(proposal, key, value)
        proposal.updated_at = datetime.now(timezone.utc)
        self.session.commit()
        self.session.refresh(proposal)
        return proposal

    def enable_sharing(self, user_id: str, proposal_id: str) -> Optional[Proposal]:
        proposal = self.get(user_id, proposal_id)
        if not proposal:
            return None
        if proposal.share_token:
            return proposal
        return self.update(
            user_id,
            proposal_id,
            share_token=secrets.token_urlsafe(settings.PROPOSALS_SHARE_TOKEN_BYTES),
        )

    def revoke_sharing(self, user_id: str, proposal_id: str) -> Optional[Proposal]:
        return self.update(user_id, proposal_id, share_token=None)

    def find_by_share_token(self, token: str) -> List[Proposal]:
        # Returns every match; callers decide what more than one means.
        stmt = select(Proposal).where(Proposal.share_token == token).limit(2)
        return list(self.session.scalars(stmt).all())


class AnswersRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, proposal_id: str) -> Optional[ProposalAnswers]:
        return self.session.get(ProposalAnswers, proposal_id)

    def upsert(self, proposal_id: str, answers: dict[str, Any]) -> ProposalAnswers:
        row = self.get(proposal_id)
        if row is None:
            row = ProposalAnswers(proposal_id=proposal_id, answers=answers)
            self.session.add(row)
        else:
            row.answers = answers
            row.updated_at = datetime.now(timezone.utc)
        self.session.commit()
        self.session.refresh(row)
        return row
