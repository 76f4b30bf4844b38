"""Load wizard and lifecycle definitions from dicts or YAML files.

Example wizard file::

    name: vendor_onboarding
    defaults:
      country: US
    steps:
      - name: business
        title: Business Details
        rules:
          - field: companyName
            message: Company name is required
          - field: employees
            message: Enter a positive head count
            gt: 0
      - name: contact
        title: Contact
        checks: [email_or_phone]

Named ``checks`` are resolved against the callables passed to
:func:`load_wizard_definition`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from marketflow_common.exceptions import ConfigurationError

from .lifecycle import LifecycleDefinition
from .schema import FieldRuleConfig, WizardConfig, WizardStepConfig, validate_config
from .wizard import FieldRule, StepCheck, WizardDefinition, WizardStep

logger = logging.getLogger(__name__)


def _read(source: Mapping[str, Any] | str | Path) -> dict[str, Any]:
    if isinstance(source, Mapping):
        return dict(source)
    path = Path(source)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Cannot read definition file {path}: {e}", context={"path": str(path)}
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Definition file must contain a mapping",
            context={"path": str(path), "type": type(data).__name__},
        )
    logger.debug("Read definition from %s", path)
    return data


def _rule(config: FieldRuleConfig) -> FieldRule:
    return FieldRule(
        field=config.field,
        message=config.message,
        required=config.required,
        gt=config.gt,
        ge=config.ge,
        lt=config.lt,
        le=config.le,
        choices=tuple(config.choices) if config.choices is not None else None,
        pattern=config.pattern,
    )


def _step(config: WizardStepConfig, checks: Mapping[str, StepCheck]) -> WizardStep:
    missing = [name for name in config.checks if name not in checks]
    if missing:
        raise ConfigurationError(
            f"Step '{config.name}' references unknown checks: {', '.join(missing)}",
            context={"step": config.name, "missing": missing, "available": sorted(checks)},
        )
    return WizardStep(
        name=config.name,
        title=config.title or config.name.replace("_", " ").title(),
        rules=tuple(_rule(r) for r in config.rules),
        checks=tuple(checks[name] for name in config.checks),
        fields=tuple(config.fields),
        description=config.description,
    )


def load_wizard_definition(
    source: Mapping[str, Any] | str | Path,
    checks: Mapping[str, StepCheck] | None = None,
) -> WizardDefinition:
    """Build a :class:`WizardDefinition` from a mapping or YAML file.

    Args:
        source: Definition mapping, or path to a YAML file
        checks: Custom step checks by the names used in ``checks:``

    Raises:
        ConfigurationError: If the file cannot be read, the definition is
            malformed, or a check name is unknown
    """
    config = validate_config(WizardConfig, _read(source), "wizard")
    available = dict(checks or {})
    return WizardDefinition(
        name=config.name,
        steps=tuple(_step(s, available) for s in config.steps),
        defaults=config.defaults,
    )


def load_lifecycle_definition(source: Mapping[str, Any] | str | Path) -> LifecycleDefinition:
    """Build a :class:`LifecycleDefinition` from a mapping or YAML file.

    Raises:
        ConfigurationError: If the file cannot be read or the definition is
            invalid
    """
    return LifecycleDefinition.from_dict(_read(source))
