"""httpx.AsyncClient with request/response body validation.

Two interchangeable ways to put the pipeline around a call:

    - ValidatingClient / create_client: an AsyncClient validating in send()
    - wrap_send: wraps any ``async send(request) -> Response`` function

Both run the same ValidationPipeline.
"""

import functools
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Union

import httpx
import structlog

from safer_httpx.config import get_settings
from safer_httpx.models import ValidationCallback, ValidationOptions
from safer_httpx.pipeline import ValidationPipeline

logger = structlog.get_logger()

OPTION_FIELDS = ("callback", "ignore_errors")

ClientOptions = Union[ValidationCallback, ValidationOptions, Mapping[str, Any], None]
SendFunction = Callable[..., Awaitable[httpx.Response]]


def split_options(options: ClientOptions) -> tuple[ValidationOptions, dict[str, Any]]:
    """Separate validation options from passthrough httpx client settings.

    Args:
        options: A bare callback, a ValidationOptions, or a mapping holding
            "callback"/"ignore_errors" plus any httpx.AsyncClient keyword

    Returns:
        (validation options, remaining client keyword arguments)
    """
    if options is None:
        return ValidationOptions(), {}
    if isinstance(options, ValidationOptions):
        return options, {}
    if isinstance(options, Mapping):
        client_kwargs = dict(options)
        fields = {name: client_kwargs.pop(name) for name in OPTION_FIELDS if name in client_kwargs}
        return ValidationOptions(**fields), client_kwargs
    if callable(options):
        return ValidationOptions(callback=options), {}
    raise TypeError(
        f"options must be a callback, ValidationOptions or a mapping, got {type(options).__name__}"
    )


class ValidatingClient(httpx.AsyncClient):
    """Drop-in httpx.AsyncClient that validates JSON bodies.

    Validation wraps send(), so it runs once per call however many redirect
    hops httpx follows. Request validation runs before any user request hooks
    and response validation after the final response and its hooks. Route
    keys may be written relative to the path of base_url.
    """

    def __init__(self, validator: Any = False, options: ClientOptions = None, **kwargs):
        validation_options, client_kwargs = split_options(options)
        client_kwargs.update(kwargs)
        client_kwargs.setdefault("timeout", get_settings().TIMEOUT_SECONDS)

        self.pipeline = ValidationPipeline.build(validator, validation_options)

        super().__init__(**client_kwargs)

        logger.debug(
            "validating_client_created",
            rule_source=self.pipeline.source.kind,
            ignore_errors=self.pipeline.ignore_errors,
        )

    async def send(self, request: httpx.Request, **kwargs) -> httpx.Response:
        await self.pipeline.validate_request(request, self.base_url)
        response = await super().send(request, **kwargs)
        try:
            return await self.pipeline.validate_response(response, request, self.base_url)
        except BaseException:
            await response.aclose()
            raise

    async def __call__(self, url: Union[httpx.URL, str], method: str = "GET", **kwargs) -> httpx.Response:
        """Send a request: ``await client(url, method="POST", json=...)``."""
        return await self.request(method, url, **kwargs)


def create_client(validator: Any, options: ClientOptions = None, **client_kwargs) -> ValidatingClient:
    """Build a validating client.

    Usage:
        # Response-only validation
        client = create_client(NoteWithId.model_validate)

        # Request and response validation
        client = create_client({"request": NoteIn.model_validate, "response": NoteWithId.model_validate})

        # Per route, reporting failures without raising
        client = create_client(
            {"/users/:id?": check_user, "POST:/messages": {"request": check_message}},
            {"callback": report, "ignore_errors": True},
            base_url="https://api.example.com",
        )

    Args:
        validator: A function (validates responses), a request/response
            mapping or Rule, a path rule map, or False to disable validation
        options: A bare callback, ValidationOptions, or a mapping of
            callback/ignore_errors plus httpx.AsyncClient settings
        **client_kwargs: Further httpx.AsyncClient settings

    Raises:
        RuleConfigurationError: The validator has an unsupported shape
        RouteSyntaxError: A route key holds a malformed template
    """
    return ValidatingClient(validator, options, **client_kwargs)


def wrap_send(send: SendFunction, validator: Any, options: ClientOptions = None) -> SendFunction:
    """Wrap an async send function with the validation pipeline.

    ``send`` receives an httpx.Request as first argument and returns an
    httpx.Response, e.g. the ``send`` method of an existing AsyncClient.
    """
    validation_options, extra = split_options(options)
    if extra:
        raise TypeError(f"wrap_send() got unexpected option(s): {', '.join(sorted(extra))}")

    pipeline = ValidationPipeline.build(validator, validation_options)

    @functools.wraps(send)
    async def guarded_send(request: httpx.Request, *args, **kwargs) -> httpx.Response:
        await pipeline.validate_request(request)
        response = await send(request, *args, **kwargs)
        return await pipeline.validate_response(response, request)

    guarded_send.pipeline = pipeline
    return guarded_send
