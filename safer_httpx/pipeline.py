"""Interception pipeline — runs validators around a single HTTP call.

Per call the pipeline moves through:

    Idle -> RequestValidating -> Sent -> ResponseValidating -> Done

A failure in either validating phase is reported first. Unless errors are
ignored it is then raised, which stops the request before it is sent or
turns a successful response into an error for the caller.

Usage:
    pipeline = ValidationPipeline.build({"POST /notes": {"request": check}})
    await pipeline.validate_request(request)
    response = await transport_send(request)
    await pipeline.validate_response(response, request)
"""

import inspect
import time
from typing import Any, Optional

import httpx
import structlog

from safer_httpx.errors import (
    InvalidResponseBody,
    RequestValidationError,
    ResponseValidationError,
    ValidationFailure,
)
from safer_httpx.models import Rule, ValidationMode, ValidationOptions, ValidationOutcome, Validator
from safer_httpx.payload import dump_payload, normalize_request_payload, read_response_payload, request_body
from safer_httpx.reporting import Reporter
from safer_httpx.routing import relative_path
from safer_httpx.rules import RuleSource, build_rule_source

logger = structlog.get_logger()


async def _invoke(validator: Validator, data: Any) -> Any:
    result = validator(data)
    if inspect.isawaitable(result):
        result = await result
    return result


def _as_reported(data: Any) -> Any:
    """Raw bodies are reported as text."""
    if isinstance(data, (bytes, bytearray)):
        return data.decode("utf-8", errors="replace")
    return data


class ValidationPipeline:
    """Validates request and response bodies of calls against a rule source.

    Holds only immutable state (rule source, options, reporter), so one
    pipeline serves any number of concurrent calls.
    """

    def __init__(self, source: RuleSource, options: Optional[ValidationOptions] = None):
        self.source = source
        self.options = options or ValidationOptions()
        self.reporter = Reporter(self.options.callback)

    @classmethod
    def build(cls, validator: Any, options: Optional[ValidationOptions] = None) -> "ValidationPipeline":
        """Create a pipeline from any accepted validator shape."""
        return cls(build_rule_source(validator), options)

    @property
    def ignore_errors(self) -> bool:
        return self.options.ignore_errors

    def _resolve(self, request: httpx.Request, base_url: Any = None) -> Rule:
        """Resolve against the path below base_url first, then the full URL."""
        url = str(request.url)
        relative = relative_path(url, base_url)
        if relative is not None:
            rule = self.source.resolve(request.method, relative)
            if not rule.is_empty:
                return rule
        return self.source.resolve(request.method, url)

    async def validate_request(self, request: httpx.Request, base_url: Any = None) -> None:
        """Validate the outgoing body before the request reaches the transport.

        Runs once per call. base_url, when given, lets route keys be written
        relative to the client base URL.

        Raises:
            RequestValidationError: Validation failed and errors are not ignored
        """
        url = str(request.url)
        rule = self._resolve(request, base_url)
        if rule.request is None:
            return

        start_time = time.perf_counter()
        data = None
        try:
            data = request_body(request)
            data = normalize_request_payload(data)
            # Return value is discarded; only raising counts as failure
            await _invoke(rule.request, data)
        except Exception as e:
            self._fail(
                ValidationOutcome(
                    mode=ValidationMode.REQUEST,
                    error=e,
                    data=_as_reported(data),
                    url=url,
                    headers=dict(request.headers),
                ),
                RequestValidationError,
            )
            return

        logger.debug(
            "request_validated",
            method=request.method,
            url=url,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )

    async def validate_response(
        self,
        response: httpx.Response,
        request: Optional[httpx.Request] = None,
        base_url: Any = None,
    ) -> httpx.Response:
        """Validate the body of a received response.

        Args:
            response: Response returned by the transport
            request: The request that produced it. Defaults to response.request.
            base_url: Base URL route keys may be relative to

        Returns:
            The same response, unchanged

        Raises:
            ResponseValidationError: Validation failed and errors are not ignored
        """
        request = request if request is not None else response.request
        url = str(request.url)
        rule = self._resolve(request, base_url)
        if rule.response is None:
            return response

        # Only 2xx bodies are described by rules; redirects and error
        # responses pass through for the caller (raise_for_status, ...)
        if not response.is_success:
            logger.debug("response_not_validated", url=url, status=response.status_code)
            return response

        start_time = time.perf_counter()
        data = await read_response_payload(response)
        try:
            result = await _invoke(rule.response, data)
            # Predicate-style validators signal failure by returning False/None
            if result is None or result is False:
                raise InvalidResponseBody(f"Invalid response body: {dump_payload(data)}")
        except Exception as e:
            self._fail(
                ValidationOutcome(
                    mode=ValidationMode.RESPONSE,
                    error=e,
                    data=data,
                    url=url,
                    status=response.status_code,
                    headers=dict(response.headers),
                ),
                ResponseValidationError,
            )
            return response

        logger.debug(
            "response_validated",
            method=request.method,
            url=url,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return response

    def _fail(self, outcome: ValidationOutcome, error_cls: type[ValidationFailure]) -> None:
        """Report a failure, then raise it unless errors are ignored."""
        self.reporter.report(outcome)

        if self.ignore_errors:
            logger.info("validation_error_ignored", mode=outcome.mode, url=outcome.url)
            return

        raise error_cls(outcome) from outcome.error
