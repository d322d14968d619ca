"""FastAPI route handlers."""

import json
from json import JSONDecodeError
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.config import Config
from core.exceptions import InvalidJSON, RequestTooLarge
from core.registry import UpstreamRegistry
from core.request_types import LogicalRequest


async def _parse_json_body(request: Request, max_body_size: int) -> Any:
    """Read and decode the request body as JSON."""
    raw_body = await request.body()
    if len(raw_body) > max_body_size:
        raise RequestTooLarge("Request body too large")

    try:
        return json.loads(raw_body.decode("utf-8"))
    except (JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidJSON(f"Invalid JSON: {e}") from e


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


async def handle_list(registry: UpstreamRegistry) -> Response:
    """Handle GET / - list configured upstreams without secrets."""
    return JSONResponse([api.model_dump() for api in registry.list()])


async def handle_proxy(request: Request, config: Config) -> Response:
    """Handle POST /proxy - forward a logical request to its upstream."""
    try:
        body = await _parse_json_body(request, config.limits.max_body_size)
    except RequestTooLarge as e:
        return _error(str(e), 413)
    except InvalidJSON as e:
        return _error(str(e), 400)

    try:
        logical = LogicalRequest.model_validate(body)
    except ValidationError as e:
        return _error(
            "Invalid proxy request",
            422,
            detail=json.loads(e.json(include_url=False, include_input=False)),
        )

    engine = request.app.state.forwarding_engine
    envelope = await engine.forward(logical)
    return JSONResponse(envelope.model_dump())
