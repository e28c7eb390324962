from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StepKindEnum(str, Enum):
    text = "text"
    long_text = "long_text"
    multi_select = "multi_select"


class AnswerValidationError(ValueError):
    pass


@dataclass(frozen=True)
class Step:
    key: str
    label: str
    kind: StepKindEnum
    options: tuple[str, ...] = ()

    @property
    def is_multi_select(self) -> bool:
        return self.kind == StepKindEnum.multi_select


SERVICE_OPTIONS: tuple[str, ...] = (
    "Discovery / strategy",
    "Copywriting",
    "Design",
    "Development",
    "SEO",
    "Analytics / tracking",
    "Maintenance",
)

DEFAULT_STEPS: tuple[Step, ...] = (
    Step(key="businessName", label="Your business name", kind=StepKindEnum.text),
    Step(key="clientIndustry", label="Client industry", kind=StepKindEnum.text),
    Step(key="projectGoal", label="Primary goal", kind=StepKindEnum.long_text),
    Step(
        key="services",
        label="Services to include",
        kind=StepKindEnum.multi_select,
        options=SERVICE_OPTIONS,
    ),
    Step(key="timeline", label="Timeline", kind=StepKindEnum.text),
)


@dataclass(frozen=True)
class TextAnswer:
    value: str

    def to_payload(self) -> str:
        return self.value


@dataclass(frozen=True)
class MultiSelectAnswer:
    options: tuple[str, ...] = ()

    @classmethod
    def of(cls, options: Iterable[str]) -> "MultiSelectAnswer":
        # dict.fromkeys keeps first-seen order and drops duplicates.
        return cls(options=tuple(dict.fromkeys(options)))

    def toggled(self, option: str) -> "MultiSelectAnswer":
        if option in self.options:
            return MultiSelectAnswer(options=tuple(item for item in self.options if item != option))
        return MultiSelectAnswer(options=self.options + (option,))

    def to_payload(self) -> list[str]:
        return list(self.options)

    def __contains__(self, option: object) -> bool:
        return option in self.options

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiSelectAnswer):
            return NotImplemented
        return frozenset(self.options) == frozenset(other.options)

    def __hash__(self) -> int:
        return hash(frozenset(self.options))


Answer = TextAnswer | MultiSelectAnswer


def _parse_answer(key: str, raw: Any) -> Answer:
    if isinstance(raw, str):
        return TextAnswer(value=raw)
    if isinstance(raw, (list, tuple)):
        if not all(isinstance(item, str) for item in raw):
            raise AnswerValidationError(f"Answer '{key}' must be a list of strings")
        return MultiSelectAnswer.of(raw)
    raise AnswerValidationError(f"Answer '{key}' must be a string or a list of strings")


@dataclass(frozen=True)
class AnswerDocument(Mapping[str, Answer]):
    """Immutable question-key to answer mapping; absent keys are unanswered."""

    _answers: Mapping[str, Answer] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "AnswerDocument":
        return cls()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "AnswerDocument":
        if payload is None:
            return cls()
        if not isinstance(payload, Mapping):
            raise AnswerValidationError("Answer document must be a JSON object")
        return cls({str(key): _parse_answer(str(key), raw) for key, raw in payload.items()})

    def with_answer(self, key: str, answer: Answer) -> "AnswerDocument":
        updated = dict(self._answers)
        updated[key] = answer
        return AnswerDocument(updated)

    def text(self, key: str) -> str | None:
        answer = self._answers.get(key)
        if isinstance(answer, TextAnswer):
            return answer.value
        return None

    def selections(self, key: str) -> tuple[str, ...]:
        answer = self._answers.get(key)
        if isinstance(answer, MultiSelectAnswer):
            return answer.options
        return ()

    def to_payload(self) -> dict[str, Any]:
        return {key: answer.to_payload() for key, answer in self._answers.items()}

    def __getitem__(self, key: str) -> Answer:
        return self._answers[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._answers)

    def __len__(self) -> int:
        return len(self._answers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnswerDocument):
            return NotImplemented
        return dict(self._answers) == dict(other._answers)

    def __hash__(self) -> int:
        return hash(frozenset(self._answers.items()))

    def __repr__(self) -> str:
        return f"AnswerDocument({self.to_payload()!r})"


def validate_against_steps(document: AnswerDocument, steps: Iterable[Step]) -> None:
    by_key = {step.key: step for step in steps}
    for key, answer in document.items():
        step = by_key.get(key)
        if step is None:
            raise AnswerValidationError(f"Unknown question key: {key}")
        if step.is_multi_select != isinstance(answer, MultiSelectAnswer):
            expected = "a list of options" if step.is_multi_select else "a string"
            raise AnswerValidationError(f"Answer '{key}' must be {expected}")
        if step.options and isinstance(answer, MultiSelectAnswer):
            unknown = [option for option in answer.options if option not in step.options]
            if unknown:
                raise AnswerValidationError(f"Unknown options for '{key}': {', '.join(unknown)}")
