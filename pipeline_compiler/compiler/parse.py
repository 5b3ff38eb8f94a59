"""
Stage 1 — Parse JSON into a strongly typed LayeredGraph.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from pipeline_compiler.errors import GraphParseError
from pipeline_compiler.schema.models import LayeredGraph


def parse_layered_graph(payload: Any) -> LayeredGraph:
    """
    Accepts a LayeredGraph, a JSON string or a mapping compatible with the
    LayeredGraph definition and returns a validated LayeredGraph instance.
    """

    if isinstance(payload, LayeredGraph):
        return payload

    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise GraphParseError(f"Invalid layered graph JSON payload: {exc}") from exc
    elif isinstance(payload, Mapping):
        data = payload
    else:
        raise GraphParseError(
            f"Unsupported payload type {type(payload).__name__}; expected str, bytes or Mapping"
        )

    try:
        return LayeredGraph.model_validate(data)
    except PydanticValidationError as exc:
        raise GraphParseError(f"Layered graph validation failed: {exc}") from exc
