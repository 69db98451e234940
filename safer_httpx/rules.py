"""Decide which validators apply to a given call.

The ``validator`` argument of a client comes in several shapes. It is turned
into exactly one RuleSource when the client is built and never re-inspected:

    False / None                 -> DisabledRules
    callable                     -> ResponseOnlyRule
    Rule / {request, response}   -> PairedRule
    {"POST /notes": ..., ...}    -> RoutedRules
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional

import structlog

from safer_httpx.errors import RuleConfigurationError
from safer_httpx.models import RULE_KEYS, Rule, Validator
from safer_httpx.routing import DEFAULT_METHOD, RouteTable, compile_routes

logger = structlog.get_logger()

EMPTY_RULE = Rule()


class RuleSource(ABC):
    """Abstract base for all rule sources.

    Contract:
        - resolve() is deterministic for a given (method, url)
        - resolve() never raises; "no validators" is an empty Rule
    """

    @property
    @abstractmethod
    def kind(self) -> str:
        """Short name for logging."""
        ...

    @abstractmethod
    def resolve(self, method: Optional[str], url: str) -> Rule:
        """Return the validators that apply to this call."""
        ...


class DisabledRules(RuleSource):
    """Validation switched off entirely."""

    @property
    def kind(self) -> str:
        return "disabled"

    def resolve(self, method: Optional[str], url: str) -> Rule:
        return EMPTY_RULE


class ResponseOnlyRule(RuleSource):
    """A single function validating every response body."""

    def __init__(self, validator: Validator):
        self.rule = Rule(response=validator)

    @property
    def kind(self) -> str:
        return "response_only"

    def resolve(self, method: Optional[str], url: str) -> Rule:
        return self.rule


class PairedRule(RuleSource):
    """One request/response pair applied to every call."""

    def __init__(self, rule: Rule):
        self.rule = rule

    @property
    def kind(self) -> str:
        return "paired"

    def resolve(self, method: Optional[str], url: str) -> Rule:
        return self.rule


class RoutedRules(RuleSource):
    """Rules selected per call by method and path."""

    def __init__(self, table: RouteTable):
        self.table = table

    @property
    def kind(self) -> str:
        return "routed"

    def resolve(self, method: Optional[str], url: str) -> Rule:
        entry = self.table.find(url, method or DEFAULT_METHOD)
        if entry is None:
            logger.debug("route_not_matched", method=method, url=url)
            return EMPTY_RULE

        logger.debug("route_matched", method=method, url=url, route=entry.key)
        return entry.rule


def build_rule_source(validator: Any) -> RuleSource:
    """Pick the rule source for a validator argument. Runs once per client.

    Raises:
        RuleConfigurationError: The argument is none of the accepted shapes
        RouteSyntaxError: A route key holds a malformed template
    """
    if validator is None or validator is False:
        source = DisabledRules()
    elif isinstance(validator, Rule):
        source = PairedRule(validator)
    elif callable(validator):
        source = ResponseOnlyRule(validator)
    elif isinstance(validator, Mapping):
        if not validator or RULE_KEYS & set(validator):
            source = PairedRule(Rule.coerce(validator))
        else:
            source = RoutedRules(compile_routes(validator))
    else:
        raise RuleConfigurationError(
            f"Unsupported validator of type {type(validator).__name__}; expected a function, "
            "a request/response mapping, a path rule map or False"
        )

    logger.debug("rule_source_built", kind=source.kind)
    return source
