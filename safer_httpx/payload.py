"""Only JSON bodies are validated; helpers to get at them."""

import json
from collections.abc import Mapping
from typing import Any

import httpx

from safer_httpx.errors import UnsupportedBodyType


def normalize_request_payload(body: Any) -> Any:
    """Turn an outgoing body into the value handed to a request validator.

    JSON text (str or bytes) is parsed, structured values pass through as-is
    and an empty body becomes None.

    Raises:
        UnsupportedBodyType: Body is not JSON text nor a structured value
    """
    if body is None or body == b"" or body == "":
        return None

    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnsupportedBodyType() from e

    if isinstance(body, str):
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise UnsupportedBodyType() from e

    if isinstance(body, (Mapping, list, tuple)):
        return body

    raise UnsupportedBodyType()


def request_body(request: httpx.Request) -> bytes:
    """Return the buffered body of a request.

    Raises:
        UnsupportedBodyType: The body is a stream that has not been read
    """
    try:
        return request.content
    except httpx.RequestNotRead as e:
        raise UnsupportedBodyType() from e


async def read_response_payload(response: httpx.Response) -> Any:
    """Read the response and decode its JSON body; non-JSON falls back to text."""
    await response.aread()
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def dump_payload(data: Any) -> str:
    """Serialize a payload for error messages and logs."""
    return json.dumps(data, default=str)
