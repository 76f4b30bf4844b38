"""``${VAR}`` references in configuration values.

- ``${VAR}`` is the value of ``VAR``; a missing variable raises
  ``ConfigurationError``
- ``${VAR:default}`` and ``${VAR:-default}`` fall back to ``default``

A string that is exactly one reference is converted to ``bool``, ``int``
or ``float`` when the substituted text reads as one. References embedded
in longer strings always produce strings.
"""

import os
import re
from typing import Any, Mapping, Union

from marketflow_common.exceptions import ConfigurationError

Scalar = Union[str, int, float, bool]

_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?P<fallback>:-?(?P<default>[^}]*))?\}")
_TRUE = frozenset({"true", "yes"})
_FALSE = frozenset({"false", "no"})


def coerce_scalar(text: str) -> Scalar:
    """Read ``text`` as a bool, int or float where possible."""
    lowered = text.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    for parse in (int, float):
        try:
            return parse(text)
        except ValueError:
            continue
    return text


class VariableSubstitution:
    """Expands references in strings, dicts and lists, recursively.

    Args:
        environ: Variable source, defaults to ``os.environ``
    """

    def __init__(self, environ: Mapping[str, str] | None = None):
        self._environ = os.environ if environ is None else environ

    def substitute(self, value: Any) -> Any:
        if isinstance(value, str):
            whole = _REFERENCE.fullmatch(value)
            if whole is not None:
                return coerce_scalar(self._resolve(whole))
            return _REFERENCE.sub(self._resolve, value)
        if isinstance(value, dict):
            return {key: self.substitute(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self.substitute(item) for item in value]
        return value

    def _resolve(self, match: "re.Match[str]") -> str:
        name = match.group("name")
        if name in self._environ:
            return self._environ[name]
        if match.group("fallback") is not None:
            return match.group("default")
        raise ConfigurationError(
            f"Environment variable '{name}' not found", context={"variable": name}
        )
