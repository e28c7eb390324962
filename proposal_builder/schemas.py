from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from proposal_builder.answers import Step, StepKindEnum


def _strip_required(value: str, label: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{label} must not be blank")
    return value


class ClientCreateRequest(BaseModel):
    name: str = Field(max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _strip_required(value, "name")


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    archived: bool
    created_at: datetime


class ProposalCreateRequest(BaseModel):
    name: str = Field(max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _strip_required(value, "name")


class ProposalUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    status: str | None = Field(default=None, max_length=64)

    @field_validator("name", "status")
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _strip_required(value, "value")


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    name: str
    status: str
    created_at: datetime
    updated_at: datetime
    share_token: str | None = None


class AnswersPayload(BaseModel):
    answers: dict[str, str | list[str]] = Field(default_factory=dict)


class AnswersResponse(BaseModel):
    proposal_id: str
    answers: dict[str, Any] | None = None


class ProposalDetailResponse(ProposalResponse):
    answers: dict[str, Any] | None = None


class ShareResponse(BaseModel):
    proposal_id: str
    share_token: str | None = None
    share_path: str | None = None


class StepResponse(BaseModel):
    key: str
    label: str
    kind: StepKindEnum
    options: list[str] = Field(default_factory=list)

    @classmethod
    def from_step(cls, step: Step) -> "StepResponse":
        return cls(key=step.key, label=step.label, kind=step.kind, options=list(step.options))
