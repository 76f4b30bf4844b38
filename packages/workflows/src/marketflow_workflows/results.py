"""Typed results for collaborator responses and engine calls.

Collaborator responses come back as loosely shaped ``{"success": ...}``
envelopes. :func:`decode_response` turns one into ``Success[T] | Failure``
exactly once, at the boundary, so the engines never look at raw payloads.
Anything that is not an explicit ``success: true`` envelope is a failure.

Engine calls (mutations, transitions, submissions) resolve to an
:class:`Outcome` instead of raising.

Example:
    ```python
    result = decode_response({"success": False, "message": "Wallet locked"})
    isinstance(result, Failure)
    # True
    result.error
    # 'Wallet locked'
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict, StrictBool
from pydantic import ValidationError as PydanticValidationError

from marketflow_common.exceptions import MarketflowError

T = TypeVar("T")

DEFAULT_FAILURE_MESSAGE = "An error occurred"


class ResponseEnvelope(BaseModel):
    """Schema of the discriminated envelope every collaborator call returns.

    Extra keys (``order``, ``wishlist``, ``user`` ...) are kept and become
    the decoded data when ``data`` itself is absent.
    """

    model_config = ConfigDict(extra="allow")

    success: StrictBool = False
    data: Any = None
    message: str | None = None
    error: str | dict[str, Any] | None = None


@dataclass(frozen=True)
class Success(Generic[T]):
    """A collaborator call that returned ``success: true``."""

    data: T | None = None
    message: str | None = None

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """A collaborator call that failed.

    Attributes:
        error: Server-supplied message, or the fallback when there was none
        exception: Exception raised by the call, if it raised
        raw: The undecoded response, if one came back
    """

    error: str
    exception: BaseException | None = None
    raw: Any = None

    @property
    def success(self) -> bool:
        return False


Result = Union[Success[T], Failure]


def _failure_message(envelope: ResponseEnvelope, fallback: str) -> str:
    if envelope.message:
        return envelope.message
    if isinstance(envelope.error, str) and envelope.error:
        return envelope.error
    if isinstance(envelope.error, dict) and envelope.error.get("message"):
        return str(envelope.error["message"])
    return fallback


def decode_response(raw: Any, fallback_message: str = DEFAULT_FAILURE_MESSAGE) -> Result[Any]:
    """Decode a raw collaborator response into ``Success`` or ``Failure``.

    Already-decoded results pass through unchanged.

    Args:
        raw: Whatever the collaborator call returned
        fallback_message: Failure message used when the server supplied none

    Returns:
        ``Success`` only for a mapping whose ``success`` is the boolean ``True``
    """
    if isinstance(raw, (Success, Failure)):
        return raw
    if not isinstance(raw, Mapping):
        return Failure(error=fallback_message, raw=raw)

    try:
        envelope = ResponseEnvelope.model_validate(dict(raw))
    except PydanticValidationError:
        return Failure(error=fallback_message, raw=raw)

    if not envelope.success:
        return Failure(error=_failure_message(envelope, fallback_message), raw=raw)

    data = envelope.data
    if data is None and envelope.model_extra:
        data = dict(envelope.model_extra)
    return Success(data=data, message=envelope.message)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """How an engine call resolved.

    Attributes:
        success: Whether the change stands
        entity_id: The entity (or wizard) the call concerned
        value: The local value after resolution (the committed next value,
            or the restored previous value)
        error: ``ValidationError``, ``InvalidTransitionError`` or
            ``RemoteFailure`` when the call did not succeed
        message: The user-facing message that was published
        data: Decoded response data on success
    """

    success: bool
    entity_id: str
    value: T | None = None
    error: MarketflowError | None = None
    message: str | None = None
    data: Any = None

    @property
    def failed(self) -> bool:
        return not self.success
