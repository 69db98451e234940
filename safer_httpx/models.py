"""Validation models — rules, route entries, outcomes, and client options."""

import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from safer_httpx.config import get_settings
from safer_httpx.errors import RuleConfigurationError

# Keys that mark a mapping as a single rule rather than a path rule map
RULE_KEYS = frozenset({"request", "response"})

# A validator takes the parsed payload and either returns (a value, True, a
# model instance, ...) or raises. Async validators are awaited.
Validator = Callable[[Any], Union[Any, Awaitable[Any]]]


class ValidationMode(str, Enum):
    """Which phase of the call produced an outcome."""

    REQUEST = "request"
    RESPONSE = "response"


class Rule(BaseModel):
    """Optional request/response validator pair."""

    request: Optional[Validator] = None
    response: Optional[Validator] = None

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return self.request is None and self.response is None

    @classmethod
    def coerce(cls, value: Any, key: Optional[str] = None) -> "Rule":
        """Normalize a rule-like value into a Rule.

        A bare callable validates responses only. A mapping may hold only the
        "request" and "response" keys.
        """
        where = f" for route '{key}'" if key is not None else ""
        if isinstance(value, Rule):
            return value
        if callable(value):
            return cls(response=value)
        if isinstance(value, Mapping):
            unknown = set(value) - RULE_KEYS
            if unknown:
                raise RuleConfigurationError(
                    f"Unexpected rule key(s){where}: {', '.join(sorted(map(str, unknown)))}"
                )
            try:
                return cls(**value)
            except PydanticValidationError as e:
                raise RuleConfigurationError(f"Rule validators{where} must be callables: {e}") from e
        raise RuleConfigurationError(
            f"Expected a validator function or a request/response mapping{where}, "
            f"got {type(value).__name__}"
        )


class RouteEntry(BaseModel):
    """One compiled route key. Immutable once built."""

    key: str
    method: str = "get"
    path_pattern: str
    compiled: re.Pattern
    param_names: tuple[str, ...] = ()
    rule: Rule

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class ValidationOutcome(BaseModel):
    """A single validation failure, as handed to the callback."""

    mode: ValidationMode
    error: BaseException
    data: Any = None
    url: str
    status: Optional[int] = None
    headers: Optional[dict[str, str]] = None

    model_config = {"arbitrary_types_allowed": True, "use_enum_values": True}


ValidationCallback = Callable[[ValidationOutcome], None]


class ValidationOptions(BaseModel):
    """Reporting callback and error policy for one client."""

    callback: Optional[ValidationCallback] = None
    ignore_errors: bool = Field(
        default_factory=lambda: get_settings().IGNORE_ERRORS,
        description="Report failures but let the call complete",
    )

    model_config = {"frozen": True}
