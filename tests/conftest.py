import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("PROPOSALS_SESSION_SECRET", "test_session_secret")
os.environ.setdefault("PROPOSALS_DB_URL", "sqlite:///./test_proposal_builder.db")
os.environ.setdefault("PROPOSALS_API_BASE_URL", "http://proposals.test")
os.environ.setdefault("PROPOSALS_AUTOSAVE_DEBOUNCE_MS", "600")

from proposal_builder.answers import AnswerDocument  # noqa: E402
from proposal_builder.security import AuthContext  # noqa: E402
from proposal_builder.stores import AnswerStoreError  # noqa: E402


class FakeAnswerStore:
    def __init__(self) -> None:
        self.documents: dict[str, AnswerDocument] = {}
        self.upserts: list[tuple[str, AnswerDocument]] = []
        self.owned: set[str] | None = None
        self.fail_with: str | None = None
        self.fail_status: int = 502
        self.upsert_delay: float = 0.0

    async def get(self, proposal_id: str) -> AnswerDocument | None:
        return self.documents.get(proposal_id)

    async def upsert(self, proposal_id: str, document: AnswerDocument) -> None:
        if self.upsert_delay:
            await asyncio.sleep(self.upsert_delay)
        if self.fail_with:
            raise AnswerStoreError(message=self.fail_with, status_code=self.fail_status)
        self.upserts.append((proposal_id, document))
        self.documents[proposal_id] = document

    async def owns(self, auth: AuthContext | None, proposal_id: str) -> bool:
        if auth is None:
            return False
        return self.owned is None or proposal_id in self.owned


@pytest.fixture()
def fake_store() -> FakeAnswerStore:
    return FakeAnswerStore()


@pytest.fixture()
def auth() -> AuthContext:
    return AuthContext(user_id="user-1")
