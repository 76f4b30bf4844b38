"""Workflow settings.

Settings come from a dict, a YAML file, or the defaults. String values may
reference environment variables (``${VAR}`` / ``${VAR:default}``).

Example YAML::

    generic_failure_message: "Something went wrong, please retry"
    notification_topic: ${MARKETFLOW_NOTIFICATION_TOPIC:notifications}
    draft_key: inventory_drafts
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from marketflow_common.exceptions import ConfigurationError
from marketflow_common.substitution import VariableSubstitution

logger = logging.getLogger(__name__)


class WorkflowSettings(BaseModel):
    """Messages, topics and storage keys shared by the engines."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    generic_failure_message: str = Field(default="An error occurred", min_length=1)
    validation_failure_message: str = "Please fix the errors before submitting"
    reason_required_message: str = "Please provide a reason"
    notification_topic: str = Field(default="notifications", min_length=1)
    mutation_topic_prefix: str = Field(default="mutations", min_length=1)
    draft_key: str = Field(default="inventory_drafts", min_length=1)
    saved_items_key: str = Field(default="saved_items", min_length=1)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Cannot read settings file {path}: {e}", context={"path": str(path)}
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Settings file must contain a mapping",
            context={"path": str(path), "type": type(data).__name__},
        )
    return data


def load_settings(
    source: "WorkflowSettings | Mapping[str, Any] | str | Path | None" = None,
    environ: Mapping[str, str] | None = None,
) -> WorkflowSettings:
    """Build :class:`WorkflowSettings` from a dict, a YAML path, or defaults.

    Args:
        source: Settings instance (returned as is), mapping, YAML file path,
            or ``None`` for defaults
        environ: Variable source for ``${...}`` substitution

    Raises:
        ConfigurationError: If the file cannot be read, a variable is
            missing, or a value fails validation
    """
    if isinstance(source, WorkflowSettings):
        return source
    if source is None:
        data: dict[str, Any] = {}
    elif isinstance(source, Mapping):
        data = dict(source)
    else:
        data = _read_yaml(Path(source))

    data = VariableSubstitution(environ).substitute(data)
    try:
        settings = WorkflowSettings.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid workflow settings: {e.error_count()} error(s)",
            context={"errors": [err["msg"] for err in e.errors()]},
        ) from e
    logger.debug("Loaded workflow settings: %s", settings.model_dump())
    return settings
