"""Configuration schema for wizard and lifecycle definitions using Pydantic.

This module defines the shape of definition files, including:
- Field rules
- Wizard steps and wizards
- Lifecycle state machines
"""

from __future__ import annotations

from typing import Any, Dict, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from marketflow_common.exceptions import ConfigurationError

ConfigT = TypeVar("ConfigT", bound=BaseModel)


class FieldRuleConfig(BaseModel):
    """Validation rule for one form field."""

    model_config = ConfigDict(extra="forbid")

    field: str
    message: str
    required: bool = True
    gt: float | None = None
    ge: float | None = None
    lt: float | None = None
    le: float | None = None
    choices: List[Any] | None = None
    pattern: str | None = None


class WizardStepConfig(BaseModel):
    """One wizard step. ``checks`` names callables supplied at load time."""

    model_config = ConfigDict(extra="forbid")

    name: str
    title: str = ""
    description: str = ""
    rules: List[FieldRuleConfig] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list)
    checks: List[str] = Field(default_factory=list)


class WizardConfig(BaseModel):
    """A complete wizard definition."""

    model_config = ConfigDict(extra="forbid")

    name: str
    steps: List[WizardStepConfig] = Field(min_length=1)
    defaults: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_unique_steps(self) -> WizardConfig:
        """Step names identify steps, so they must be unique."""
        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name '{step.name}'")
            seen.add(step.name)
        return self


class LifecycleConfig(BaseModel):
    """A lifecycle state machine definition.

    Only shape is checked here. Cross-references between states,
    transitions and progress are validated by ``LifecycleDefinition``.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    states: List[str] = Field(min_length=1)
    transitions: Dict[str, List[str]] = Field(default_factory=dict)
    progress: Dict[str, int] = Field(default_factory=dict)
    initial: str | None = None
    aliases: Dict[str, str] = Field(default_factory=dict)
    reason_required: List[str] = Field(default_factory=list)
    actions: Dict[str, List[str]] = Field(default_factory=dict)
    labels: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_progress_range(self) -> LifecycleConfig:
        for state, value in self.progress.items():
            if not 0 <= value <= 100:
                raise ValueError(f"Progress for '{state}' must be within 0..100, got {value}")
        return self


def validate_config(model: type[ConfigT], data: Any, kind: str) -> ConfigT:
    """Validate ``data`` against ``model``, raising ``ConfigurationError``."""
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{kind} definition must be a mapping",
            context={"kind": kind, "type": type(data).__name__},
        )
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid {kind} definition: {e.error_count()} error(s)",
            context={
                "kind": kind,
                "errors": [
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
                ],
            },
        ) from e
