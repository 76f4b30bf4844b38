"""Multi-step wizard with per-step validation gating.

A wizard is a :class:`WizardDefinition`: an ordered list of
:class:`WizardStep` objects, each declaring :class:`FieldRule` entries (and
optionally custom checks), plus default form values. The
:class:`WizardController` holds the live :class:`WizardState` for one
session:

- ``go_next`` advances only when the current step validates clean
- ``go_previous`` always moves back and never validates
- ``update_field`` merges a value and clears that field's error
- ``submit`` validates the current step, builds the create payload and
  awaits the remote create call; a failure leaves the form untouched

Example:
    ```python
    wizard = WizardController(INVENTORY_WIZARD, submitter=api.create_entity,
                              payload_builder=build_inventory_payload)
    wizard.update_field("itemName", "Premium Cotton Fabric")
    if not wizard.go_next():
        print(wizard.errors_by_field)
    ```
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from marketflow_common.events import EventType
from marketflow_common.exceptions import ConfigurationError, ValidationError

from .coercion import is_blank, parse_number
from .exceptions import RemoteFailure
from .notifications import Notifier
from .persistence import DraftStore, draft_form_data
from .results import Failure, Outcome, Success, decode_response
from .settings import WorkflowSettings

logger = logging.getLogger(__name__)

StepCheck = Callable[[Mapping[str, Any]], Mapping[str, str]]
PayloadBuilder = Callable[[Mapping[str, Any]], dict[str, Any]]
Submitter = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for one form field.

    Blank values fail only when ``required``. Non-blank values must satisfy
    every declared constraint: numeric bounds (which also require the value
    to parse as a number), ``choices`` membership and a full-match
    ``pattern``.
    """

    field: str
    message: str
    required: bool = True
    gt: float | None = None
    ge: float | None = None
    lt: float | None = None
    le: float | None = None
    choices: tuple[Any, ...] | None = None
    pattern: str | None = None

    @property
    def is_numeric(self) -> bool:
        return any(bound is not None for bound in (self.gt, self.ge, self.lt, self.le))

    def check(self, value: Any) -> str | None:
        """Return the rule's message if ``value`` violates it, else ``None``."""
        if is_blank(value):
            return self.message if self.required else None

        if self.is_numeric:
            number = parse_number(value)
            if number is None:
                return self.message
            if self.gt is not None and not number > self.gt:
                return self.message
            if self.ge is not None and not number >= self.ge:
                return self.message
            if self.lt is not None and not number < self.lt:
                return self.message
            if self.le is not None and not number <= self.le:
                return self.message

        if self.choices is not None and value not in self.choices:
            return self.message

        if self.pattern is not None and not re.fullmatch(self.pattern, str(value).strip()):
            return self.message

        return None


@dataclass(frozen=True)
class WizardStep:
    """One page of a wizard.

    Attributes:
        name: Stable identifier
        title: Label shown in the step indicator
        rules: Field rules checked when leaving the step
        checks: Custom validators receiving a read-only view of the form
            data and returning ``{field: message}``
        fields: Fields rendered on the step that carry no rule
        description: Optional helper text
    """

    name: str
    title: str = ""
    rules: tuple[FieldRule, ...] = ()
    checks: tuple[StepCheck, ...] = ()
    fields: tuple[str, ...] = ()
    description: str = ""

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(rule.field for rule in self.rules if rule.required)

    @property
    def field_names(self) -> tuple[str, ...]:
        names = list(self.fields)
        for rule in self.rules:
            if rule.field not in names:
                names.append(rule.field)
        return tuple(names)

    @property
    def is_optional(self) -> bool:
        """An optional step can never block on empty input."""
        return not self.required_fields and not self.checks

    def validate(self, form_data: Mapping[str, Any]) -> dict[str, str]:
        view = MappingProxyType(dict(form_data))
        errors: dict[str, str] = {}
        for rule in self.rules:
            message = rule.check(view.get(rule.field))
            if message and rule.field not in errors:
                errors[rule.field] = message
        for check in self.checks:
            for name, message in (check(view) or {}).items():
                errors.setdefault(name, message)
        return errors


@dataclass(frozen=True)
class WizardDefinition:
    """Ordered steps plus the form's initial values."""

    name: str
    steps: tuple[WizardStep, ...]
    defaults: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.steps:
            raise ConfigurationError(
                f"Wizard '{self.name}' must have at least one step",
                context={"wizard": self.name},
            )
        names = [step.name for step in self.steps]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Wizard '{self.name}' has duplicate step names: {', '.join(duplicates)}",
                context={"wizard": self.name, "duplicates": duplicates},
            )

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def step_index(self, name: str) -> int:
        for index, step in enumerate(self.steps):
            if step.name == name:
                return index
        raise ConfigurationError(
            f"Wizard '{self.name}' has no step '{name}'",
            context={"wizard": self.name, "step": name},
        )

    def initial_data(self) -> dict[str, Any]:
        return copy.deepcopy(dict(self.defaults))


@dataclass
class WizardState:
    """Mutable state of one wizard session."""

    step_count: int
    current_step_index: int = 0
    form_data: dict[str, Any] = field(default_factory=dict)
    errors_by_field: dict[str, str] = field(default_factory=dict)


class WizardController:
    """Drives one wizard session.

    Args:
        definition: Steps and defaults
        submitter: Remote create call; receives the built payload and
            returns the collaborator envelope
        payload_builder: Turns form data into the create payload; defaults
            to a deep copy of the form data
        notifier: Notification channel
        settings: Messages and draft key
        initial_data: Values merged over the definition defaults
        success_message: Notification published after a successful submit
    """

    def __init__(
        self,
        definition: WizardDefinition,
        *,
        submitter: Submitter | None = None,
        payload_builder: PayloadBuilder | None = None,
        notifier: Notifier | None = None,
        settings: WorkflowSettings | None = None,
        initial_data: Mapping[str, Any] | None = None,
        success_message: str = "Submitted successfully",
    ):
        self._definition = definition
        self._success_message = success_message
        self._submitter = submitter
        self._payload_builder = payload_builder
        self._settings = settings or (notifier.settings if notifier else WorkflowSettings())
        self._notifier = notifier or Notifier(settings=self._settings)
        self._submitting = False
        self._state = WizardState(step_count=definition.step_count)
        self._state.form_data = definition.initial_data()
        if initial_data:
            self._state.form_data.update(copy.deepcopy(dict(initial_data)))

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def definition(self) -> WizardDefinition:
        return self._definition

    @property
    def name(self) -> str:
        return self._definition.name

    @property
    def steps(self) -> tuple[WizardStep, ...]:
        return self._definition.steps

    @property
    def step_count(self) -> int:
        return self._state.step_count

    @property
    def current_step_index(self) -> int:
        return self._state.current_step_index

    @property
    def current_step_number(self) -> int:
        """1-based position, as in "Step 2 of 5"."""
        return self._state.current_step_index + 1

    @property
    def current_step(self) -> WizardStep:
        return self.steps[self._state.current_step_index]

    @property
    def form_data(self) -> Mapping[str, Any]:
        """Read-only view; write through :meth:`update_field`."""
        return MappingProxyType(self._state.form_data)

    @property
    def errors_by_field(self) -> Mapping[str, str]:
        return MappingProxyType(self._state.errors_by_field)

    @property
    def is_first_step(self) -> bool:
        return self._state.current_step_index == 0

    @property
    def is_last_step(self) -> bool:
        return self._state.current_step_index == self.step_count - 1

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def progress(self) -> float:
        return self.current_step_number * 100 / self.step_count

    # ------------------------------------------------------------------
    # Validation and navigation
    # ------------------------------------------------------------------

    def validate_step(self, index: int) -> dict[str, str]:
        """Errors for step ``index`` against the current form data. Pure."""
        if not 0 <= index < self.step_count:
            raise IndexError(f"Step index {index} out of range 0..{self.step_count - 1}")
        return self.steps[index].validate(self._state.form_data)

    def _clear_step_errors(self, index: int) -> None:
        for name in self.steps[index].field_names:
            self._state.errors_by_field.pop(name, None)

    def go_next(self) -> bool:
        """Advance one step if the current step validates clean."""
        index = self._state.current_step_index
        errors = self.validate_step(index)
        if errors:
            self._state.errors_by_field = errors
            logger.debug("%s: step %s blocked on %s", self.name, self.steps[index].name, sorted(errors))
            return False

        self._clear_step_errors(index)
        self._state.current_step_index = min(index + 1, self.step_count - 1)
        logger.debug("%s: advanced to step %d", self.name, self._state.current_step_index)
        return True

    def go_previous(self) -> bool:
        """Move back one step; False only when already on the first step."""
        if self._state.current_step_index == 0:
            return False
        self._state.current_step_index -= 1
        return True

    def go_to(self, index: int) -> bool:
        """Jump to ``index``.

        Backward jumps always succeed. Forward jumps validate every step
        from the current one up to (not including) the target and stop on
        the first step that fails, leaving its errors set.
        """
        if not 0 <= index < self.step_count:
            return False
        while self._state.current_step_index < index:
            if not self.go_next():
                return False
        self._state.current_step_index = index
        return True

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_field(self, name: str, value: Any) -> None:
        self._state.form_data[name] = value
        self._state.errors_by_field.pop(name, None)

    def update_fields(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self.update_field(name, value)

    def reset(self) -> None:
        """Back to defaults on the first step with no errors."""
        self._state = WizardState(
            step_count=self._definition.step_count,
            form_data=self._definition.initial_data(),
        )

    def save_draft(self, drafts: DraftStore) -> dict[str, Any]:
        return drafts.save(self._state.form_data)

    def restore_draft(self, draft: Mapping[str, Any]) -> None:
        """Replace the form with a saved draft, returning to the first step."""
        self.reset()
        self._state.form_data.update(draft_form_data(draft))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def build_payload(self) -> dict[str, Any]:
        if self._payload_builder is None:
            return copy.deepcopy(self._state.form_data)
        return self._payload_builder(MappingProxyType(self._state.form_data))

    def prepare_submission(self) -> dict[str, Any] | ValidationError:
        """Validate the current step and build the payload.

        Returns:
            The payload, or the ``ValidationError`` describing the blocking
            fields (which are also set on ``errors_by_field``)
        """
        errors = self.validate_step(self._state.current_step_index)
        if errors:
            self._state.errors_by_field = errors
            return ValidationError(
                self._settings.validation_failure_message,
                context={"errors": dict(errors), "step": self.current_step.name},
            )
        return self.build_payload()

    async def submit(self, submitter: Submitter | None = None) -> Outcome[dict[str, Any]]:
        """Validate, build the payload and await the remote create call.

        Args:
            submitter: Overrides the controller's submitter for this call

        Returns:
            Outcome carrying the payload as ``value``; on success ``data``
            holds the decoded response data
        """
        prepared = self.prepare_submission()
        if isinstance(prepared, ValidationError):
            await self._notifier.error(prepared.message, entity_id=self.name)
            return Outcome(
                success=False, entity_id=self.name, error=prepared, message=prepared.message
            )

        call = submitter or self._submitter
        if call is None:
            raise ConfigurationError(
                f"Wizard '{self.name}' has no submitter", context={"wizard": self.name}
            )

        self._submitting = True
        try:
            try:
                raw = await call(prepared)
            except Exception as e:
                result: Success[Any] | Failure = Failure(
                    error=str(e) or self._settings.generic_failure_message, exception=e
                )
            else:
                result = decode_response(raw, self._settings.generic_failure_message)
        finally:
            self._submitting = False

        if isinstance(result, Success):
            logger.info("%s: submitted", self.name)
            await self._notifier.mutation_event(EventType.SUBMITTED, self.name)
            await self._notifier.success(self._success_message, entity_id=self.name)
            return Outcome(
                success=True,
                entity_id=self.name,
                value=prepared,
                message=result.message,
                data=result.data,
            )

        logger.warning("%s: submission failed: %s", self.name, result.error)
        failure = RemoteFailure(
            result.error,
            entity_id=self.name,
            server_message=result.error,
            cause=result.exception,
            raw=result.raw,
        )
        await self._notifier.error(result.error, entity_id=self.name)
        return Outcome(
            success=False, entity_id=self.name, value=prepared, error=failure, message=result.error
        )

    def __repr__(self) -> str:
        return (
            f"WizardController({self.name!r}, step {self.current_step_number}/{self.step_count})"
        )
