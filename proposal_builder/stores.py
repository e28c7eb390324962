from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from proposal_builder.answers import AnswerDocument, AnswerValidationError
from proposal_builder.config import settings
from proposal_builder.db import SessionLocal, StoreConfigurationError
from proposal_builder.models import Proposal
from proposal_builder.repositories import AnswersRepository, ProposalsRepository
from proposal_builder.security import AuthContext

logger = logging.getLogger(__name__)


class AnswerStoreError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class AnswerStore(Protocol):
    async def get(self, proposal_id: str) -> AnswerDocument | None: ...

    async def upsert(self, proposal_id: str, document: AnswerDocument) -> None: ...

    async def owns(self, auth: AuthContext | None, proposal_id: str) -> bool: ...


class ShareLookup(Protocol):
    async def find_by_share_token(self, token: str) -> list[Proposal]: ...


def _decode_document(proposal_id: str, payload: Any) -> AnswerDocument:
    try:
        return AnswerDocument.from_payload(payload)
    except AnswerValidationError as exc:
        raise AnswerStoreError(
            message=f"Stored answers for proposal {proposal_id} are malformed: {exc}",
            status_code=500,
        ) from exc


class SqlAnswerStore:
    """
    Answer store backed by the service's own database.

    SQLAlchemy sessions are blocking, so each call runs in a worker thread and
    the event loop keeps serving other requests and debounce timers meanwhile.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def _open(self) -> Session:
        try:
            return self._session_factory()
        except StoreConfigurationError as exc:
            raise AnswerStoreError(message=str(exc), status_code=500) from exc
        except SQLAlchemyError as exc:
            # e.g. a malformed PROPOSALS_DB_URL rejected by create_engine
            raise AnswerStoreError(message=f"Database is misconfigured: {exc}", status_code=500) from exc

    async def get(self, proposal_id: str) -> AnswerDocument | None:
        payload = await asyncio.to_thread(self._load_payload, proposal_id)
        if payload is None:
            return None
        return _decode_document(proposal_id, payload)

    def _load_payload(self, proposal_id: str) -> Any:
        session = self._open()
        try:
            row = AnswersRepository(session).get(proposal_id)
            return row.answers if row is not None else None
        except SQLAlchemyError as exc:
            raise AnswerStoreError(message=f"Failed to load answers: {exc}", status_code=500) from exc
        finally:
            session.close()

    async def upsert(self, proposal_id: str, document: AnswerDocument) -> None:
        await asyncio.to_thread(self._upsert_payload, proposal_id, document.to_payload())
        logger.debug("answers.upserted", extra={"proposal_id": proposal_id, "keys": len(document)})

    def _upsert_payload(self, proposal_id: str, payload: dict[str, Any]) -> None:
        session = self._open()
        try:
            AnswersRepository(session).upsert(proposal_id, payload)
        except SQLAlchemyError as exc:
            session.rollback()
            raise AnswerStoreError(message=f"Failed to save answers: {exc}", status_code=500) from exc
        finally:
            session.close()

    async def owns(self, auth: AuthContext | None, proposal_id: str) -> bool:
        if auth is None:
            return False
        return await asyncio.to_thread(self._owns, auth.user_id, proposal_id)

    def _owns(self, user_id: str, proposal_id: str) -> bool:
        session = self._open()
        try:
            return ProposalsRepository(session).get(user_id, proposal_id) is not None
        except SQLAlchemyError as exc:
            raise AnswerStoreError(message=f"Failed to load proposal: {exc}", status_code=500) from exc
        finally:
            session.close()

    async def find_by_share_token(self, token: str) -> list[Proposal]:
        return await asyncio.to_thread(self._find_by_share_token, token)

    def _find_by_share_token(self, token: str) -> list[Proposal]:
        session = self._open()
        try:
            proposals = ProposalsRepository(session).find_by_share_token(token)
            # Detach so callers can read columns after the session closes.
            session.expunge_all()
            return proposals
        except SQLAlchemyError as exc:
            raise AnswerStoreError(message=f"Failed to look up share token: {exc}", status_code=500) from exc
        finally:
            session.close()


class HttpAnswerStore:
    """Answer store that talks to a remote proposal service over its JSON API."""

    def __init__(
        self,
        *,
        session_token: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved = base_url or settings.api_base_url
        if not resolved:
            raise AnswerStoreError(message="PROPOSALS_API_BASE_URL is not configured", status_code=500)
        self._base_url = resolved.rstrip("/")
        self._session_token = session_token
        self._timeout = settings.PROPOSALS_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._session_token}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                return await client.request(method, path, json=payload, headers=self._headers())
        except httpx.RequestError as exc:
            raise AnswerStoreError(message=f"Network error while calling proposal API: {exc}") from exc

    @staticmethod
    def _json_object(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise AnswerStoreError(message="Proposal API returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise AnswerStoreError(message="Proposal API response must be a JSON object")
        return body

    async def get(self, proposal_id: str) -> AnswerDocument | None:
        response = await self._request("GET", f"/proposals/{proposal_id}/answers")
        if response.status_code >= 400:
            raise AnswerStoreError(
                message=f"Loading answers failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        body = self._json_object(response)
        return None if body.get("answers") is None else _decode_document(proposal_id, body["answers"])

    async def upsert(self, proposal_id: str, document: AnswerDocument) -> None:
        response = await self._request(
            "PUT",
            f"/proposals/{proposal_id}/answers",
            payload={"answers": document.to_payload()},
        )
        if response.status_code >= 400:
            raise AnswerStoreError(
                message=f"Saving answers failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

    async def owns(self, auth: AuthContext | None, proposal_id: str) -> bool:
        if auth is None:
            return False
        response = await self._request("GET", f"/proposals/{proposal_id}")
        if response.status_code in (401, 403, 404):
            return False
        if response.status_code >= 400:
            raise AnswerStoreError(
                message=f"Checking proposal ownership failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        return True
