"""Unit tests for the interception pipeline, driven with bare httpx objects."""

import httpx
import pydantic
import pytest

from safer_httpx.errors import (
    InvalidResponseBody,
    RequestValidationError,
    ResponseValidationError,
    UnsupportedBodyType,
)
from safer_httpx.models import ValidationOptions
from safer_httpx.pipeline import ValidationPipeline

from tests.schemas import NoteIn, NoteWithId

URL = "https://example.local/notes"


def make_pipeline(validator, callback=None, ignore_errors=False):
    return ValidationPipeline.build(
        validator, ValidationOptions(callback=callback, ignore_errors=ignore_errors)
    )


def post(body, **kwargs):
    return httpx.Request("POST", URL, json=body, **kwargs)


class TestRequestPhase:

    @pytest.mark.asyncio
    async def test_valid_body(self, callback):
        pipeline = make_pipeline({"request": NoteIn.model_validate}, callback)

        await pipeline.validate_request(post({"note": "Dan"}))

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_body_raises_and_reports(self, callback):
        pipeline = make_pipeline({"request": NoteWithId.model_validate}, callback)

        with pytest.raises(RequestValidationError) as exc_info:
            await pipeline.validate_request(post({"note": "Dan"}, headers={"X-Trace": "abc"}))

        assert isinstance(exc_info.value.error, pydantic.ValidationError)
        assert exc_info.value.__cause__ is exc_info.value.error
        callback.assert_called_once()
        outcome = callback.call_args.args[0]
        assert outcome.mode == "request"
        assert outcome.data == {"note": "Dan"}
        assert outcome.url == URL
        assert outcome.status is None
        assert outcome.headers["x-trace"] == "abc"
        assert exc_info.value.outcome is outcome

    @pytest.mark.asyncio
    async def test_ignored_failure_is_still_reported(self, callback):
        pipeline = make_pipeline({"request": NoteWithId.model_validate}, callback, ignore_errors=True)

        await pipeline.validate_request(post({"note": "Dan"}))

        callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_json_body(self, callback):
        pipeline = make_pipeline({"request": NoteIn.model_validate}, callback)
        request = httpx.Request("POST", URL, data={"note": "Dan"})

        with pytest.raises(RequestValidationError) as exc_info:
            await pipeline.validate_request(request)

        assert isinstance(exc_info.value.error, UnsupportedBodyType)
        assert callback.call_args.args[0].data == "note=Dan"

    @pytest.mark.asyncio
    async def test_empty_body_is_validated_as_none(self, callback):
        seen = []
        pipeline = make_pipeline({"request": seen.append}, callback)

        await pipeline.validate_request(httpx.Request("GET", URL))

        assert seen == [None]
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_return_value_is_ignored(self, callback):
        pipeline = make_pipeline({"request": lambda data: False}, callback)

        await pipeline.validate_request(post({"note": "Dan"}))

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_async_validator(self, callback):
        async def check(data):
            if "note" not in data:
                raise ValueError("note is required")

        pipeline = make_pipeline({"request": check}, callback)

        await pipeline.validate_request(post({"note": "Dan"}))
        with pytest.raises(RequestValidationError, match="note is required"):
            await pipeline.validate_request(post({"bad": "Value"}))

    @pytest.mark.asyncio
    async def test_no_request_validator(self, callback):
        pipeline = make_pipeline(NoteWithId.model_validate, callback)

        await pipeline.validate_request(httpx.Request("POST", URL, content=b"not json"))

        callback.assert_not_called()


class TestResponsePhase:

    @staticmethod
    def respond(payload, status_code=200, method="GET"):
        return httpx.Response(status_code, json=payload, request=httpx.Request(method, URL))

    @pytest.mark.asyncio
    async def test_valid_response_is_returned_unchanged(self, callback):
        pipeline = make_pipeline(NoteWithId.model_validate, callback)
        response = self.respond({"id": 42, "note": "Dan"})

        assert await pipeline.validate_response(response) is response
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_response_raises_and_reports(self, callback):
        pipeline = make_pipeline({"response": NoteWithId.model_validate}, callback)

        with pytest.raises(ResponseValidationError) as exc_info:
            await pipeline.validate_response(self.respond({"invalid": "data"}, status_code=201))

        assert isinstance(exc_info.value.error, pydantic.ValidationError)
        outcome = callback.call_args.args[0]
        assert outcome.mode == "response"
        assert outcome.status == 201
        assert outcome.data == {"invalid": "data"}
        assert outcome.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_falsy_predicate_is_a_failure(self, callback):
        pipeline = make_pipeline(lambda data: "user" in data, callback)

        with pytest.raises(ResponseValidationError) as exc_info:
            await pipeline.validate_response(self.respond({"id": 1}))

        error = exc_info.value.error
        assert isinstance(error, InvalidResponseBody)
        assert str(error) == 'Invalid response body: {"id": 1}'

    @pytest.mark.asyncio
    async def test_none_result_is_a_failure(self, callback):
        pipeline = make_pipeline(lambda data: None, callback, ignore_errors=True)

        await pipeline.validate_response(self.respond({"id": 1}))

        assert isinstance(callback.call_args.args[0].error, InvalidResponseBody)

    @pytest.mark.asyncio
    async def test_empty_container_result_passes(self, callback):
        pipeline = make_pipeline(lambda data: data, callback)

        await pipeline.validate_response(self.respond([]))

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_ignored_failure_returns_response(self, callback):
        pipeline = make_pipeline(NoteWithId.model_validate, callback, ignore_errors=True)
        response = self.respond({"id": 42})

        assert await pipeline.validate_response(response) is response
        callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_explicit_request_overrides_response_request(self, callback):
        pipeline = make_pipeline({"POST /notes": NoteWithId.model_validate}, callback)
        response = self.respond({"id": 42}, method="GET")

        # GET /notes has no route; the explicit POST request does
        await pipeline.validate_response(response)
        with pytest.raises(ResponseValidationError):
            await pipeline.validate_response(response, httpx.Request("POST", URL))

    @pytest.mark.asyncio
    async def test_redirects_are_not_validated(self, callback):
        pipeline = make_pipeline(NoteWithId.model_validate, callback)
        response = httpx.Response(
            302, headers={"Location": "/notes/1"}, request=httpx.Request("GET", URL)
        )

        await pipeline.validate_response(response)

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_responses_are_not_validated(self, callback):
        pipeline = make_pipeline(NoteWithId.model_validate, callback)
        response = self.respond({"detail": "Note not found"}, status_code=404)

        assert await pipeline.validate_response(response) is response
        callback.assert_not_called()


class TestBothPhases:

    @pytest.mark.asyncio
    async def test_request_and_response_failures_are_reported_separately(self, callback):
        pipeline = make_pipeline(
            {"request": NoteWithId.model_validate, "response": NoteWithId.model_validate},
            callback,
            ignore_errors=True,
        )
        request = post({"note": "Dan"})

        await pipeline.validate_request(request)
        await pipeline.validate_response(httpx.Response(200, json={"note": "Dan"}, request=request))

        modes = [c.args[0].mode for c in callback.call_args_list]
        assert modes == ["request", "response"]

    @pytest.mark.asyncio
    async def test_unmatched_route_skips_both_phases(self, callback):
        pipeline = make_pipeline({"POST /notes": {"request": NoteWithId.model_validate}}, callback)
        request = httpx.Request("PUT", URL, json={"bad": "Value"})

        await pipeline.validate_request(request)
        await pipeline.validate_response(httpx.Response(200, json={"bad": "Value"}, request=request))

        callback.assert_not_called()
