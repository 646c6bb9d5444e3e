import json
from typing import Any, Callable, Dict, Type, TypeVar

from fastapi import Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError


M = TypeVar("M", bound=BaseModel)


async def request_payload(request: Request) -> Dict[str, Any]:
    """Query parameters, overlaid with the JSON body on POST."""
    payload: Dict[str, Any] = dict(request.query_params)
    if request.method == "POST":
        raw = await request.body()
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                raise RequestValidationError([{"type": "json_invalid", "loc": ("body",), "msg": "Invalid JSON body"}])
            if isinstance(body, dict):
                payload.update(body)
    return payload


def payload_model(model: Type[M]) -> Callable[..., Any]:
    """Dependency validating the merged query/body payload against ``model``."""

    async def dependency(payload: Dict[str, Any] = Depends(request_payload)) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RequestValidationError(exc.errors())

    return dependency


def settings_dependency(request: Request):
    return request.app.state.settings


def token_resolver_dependency(request: Request):
    return request.app.state.token_resolver
