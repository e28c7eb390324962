from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from proposal_builder.answers import (
    AnswerDocument,
    MultiSelectAnswer,
    Step,
    TextAnswer,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[AnswerDocument], None]


class WizardError(ValueError):
    pass


def compute_progress(index: int, step_count: int) -> int:
    # Half-up to match the browser's Math.round on the .5 boundary.
    ratio = Decimal(100 * (index + 1)) / Decimal(step_count)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class WizardState:
    """
    In-memory questionnaire state for one proposal: the ordered steps, the
    visible step index, and the answers being edited.

    Navigation never notifies listeners. Answer mutations always do, with the
    new document, so an autosave engine can schedule a write.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        *,
        document: AnswerDocument | None = None,
    ) -> None:
        if not steps:
            raise WizardError("A wizard needs at least one step")
        keys = [step.key for step in steps]
        if len(set(keys)) != len(keys):
            raise WizardError("Step keys must be unique")
        self._steps: tuple[Step, ...] = tuple(steps)
        self._steps_by_key = {step.key: step for step in self._steps}
        self._index = 0
        self._document = document or AnswerDocument.empty()
        self._listeners: list[ChangeListener] = []

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    @property
    def step_count(self) -> int:
        return len(self._steps)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current_step(self) -> Step:
        return self._steps[self._index]

    @property
    def document(self) -> AnswerDocument:
        return self._document

    @property
    def is_first(self) -> bool:
        return self._index == 0

    @property
    def is_last(self) -> bool:
        return self._index == self.step_count - 1

    @property
    def progress(self) -> int:
        return compute_progress(self._index, self.step_count)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def advance(self) -> int:
        self._index = min(self._index + 1, self.step_count - 1)
        return self._index

    def retreat(self) -> int:
        self._index = max(self._index - 1, 0)
        return self._index

    def go_to(self, index: int) -> int:
        self._index = min(max(index, 0), self.step_count - 1)
        return self._index

    def step(self, key: str) -> Step:
        step = self._steps_by_key.get(key)
        if step is None:
            raise WizardError(f"Unknown question key: {key}")
        return step

    def set_answer(self, key: str, value: str | Iterable[str]) -> AnswerDocument:
        step = self.step(key)
        if step.is_multi_select:
            if isinstance(value, str):
                raise WizardError(f"'{key}' is a multi-select question; pass a list of options")
            answer = MultiSelectAnswer.of(value)
            self._require_known_options(step, answer.options)
            return self._replace(key, answer)
        if not isinstance(value, str):
            raise WizardError(f"'{key}' is a text question; pass a string")
        return self._replace(key, TextAnswer(value=value))

    def toggle(self, key: str, option: str) -> AnswerDocument:
        step = self.step(key)
        if not step.is_multi_select:
            raise WizardError(f"'{key}' is not a multi-select question")
        self._require_known_options(step, (option,))
        current = self._document.get(key)
        if current is None:
            current = MultiSelectAnswer()
        elif not isinstance(current, MultiSelectAnswer):
            raise WizardError(
                f"'{key}' holds a text answer; replace it with set_answer before toggling options"
            )
        return self._replace(key, current.toggled(option))

    def _require_known_options(self, step: Step, options: Iterable[str]) -> None:
        if not step.options:
            return
        unknown = [option for option in options if option not in step.options]
        if unknown:
            raise WizardError(f"Unknown options for '{step.key}': {', '.join(unknown)}")

    def _replace(self, key: str, answer: TextAnswer | MultiSelectAnswer) -> AnswerDocument:
        self._document = self._document.with_answer(key, answer)
        logger.debug("wizard.answer_changed", extra={"question_key": key})
        for listener in list(self._listeners):
            listener(self._document)
        return self._document
