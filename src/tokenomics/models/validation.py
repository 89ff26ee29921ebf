"""Validation front-end: turn raw mappings into validated configuration.

The engine only ever sees models that went through these functions, so every
domain error is reported before the first tick.
"""

from typing import Any, Mapping, Union

from pydantic import BaseModel, ValidationError

from ..errors import InvalidOptions, InvalidToken
from .pydantic_models import SimulationOptions, Token


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "<model>"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _as_dict(data: Union[Mapping[str, Any], BaseModel]) -> dict:
    # model_dump on a model_construct()-ed instance keeps unchecked values, so
    # revalidating the dump catches models that bypassed validation.
    if hasattr(data, "model_dump"):
        return data.model_dump()
    if isinstance(data, Mapping):
        return dict(data)
    raise TypeError(f"Expected a mapping or a pydantic model, got {type(data).__name__}")


def validate_token(data: Union[Mapping[str, Any], BaseModel]) -> Token:
    """Return a validated Token or raise InvalidToken."""
    try:
        return Token.model_validate(_as_dict(data))
    except ValidationError as exc:
        raise InvalidToken(_describe(exc)) from exc


def validate_options(data: Union[Mapping[str, Any], BaseModel]) -> SimulationOptions:
    """Return validated SimulationOptions or raise InvalidOptions."""
    try:
        return SimulationOptions.model_validate(_as_dict(data))
    except ValidationError as exc:
        raise InvalidOptions(_describe(exc)) from exc
