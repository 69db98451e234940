"""safer-httpx — validate JSON request and response bodies of httpx calls.

Usage:
    from safer_httpx import create_client

    client = create_client(
        {"POST /notes": {"request": NoteIn.model_validate, "response": Note.model_validate}},
        {"callback": report_failure, "ignore_errors": False},
        base_url="https://api.example.com",
    )
    response = await client.post("/notes", json={"note": "Dan"})
"""

from safer_httpx.client import ValidatingClient, create_client, split_options, wrap_send
from safer_httpx.errors import (
    InvalidResponseBody,
    RequestValidationError,
    ResponseValidationError,
    RouteSyntaxError,
    RuleConfigurationError,
    SaferHttpxError,
    UnsupportedBodyType,
    ValidationFailure,
)
from safer_httpx.log import configure_logging
from safer_httpx.models import Rule, RouteEntry, ValidationMode, ValidationOptions, ValidationOutcome
from safer_httpx.pipeline import ValidationPipeline
from safer_httpx.routing import RouteTable, compile_routes, parse_route_key
from safer_httpx.rules import build_rule_source

__all__ = [
    "ValidatingClient",
    "create_client",
    "split_options",
    "wrap_send",
    "ValidationPipeline",
    "Rule",
    "RouteEntry",
    "RouteTable",
    "compile_routes",
    "parse_route_key",
    "build_rule_source",
    "ValidationMode",
    "ValidationOptions",
    "ValidationOutcome",
    "configure_logging",
    "SaferHttpxError",
    "UnsupportedBodyType",
    "InvalidResponseBody",
    "ValidationFailure",
    "RequestValidationError",
    "ResponseValidationError",
    "RuleConfigurationError",
    "RouteSyntaxError",
]
