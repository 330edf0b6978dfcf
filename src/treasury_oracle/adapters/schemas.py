"""Known provider response shapes and the matcher that picks one."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

ShapeT = TypeVar("ShapeT", bound=BaseModel)


class ResponseShape(BaseModel):
    """Base for one version of a provider's response payload."""

    model_config = ConfigDict(extra="ignore", frozen=True)


@dataclass(frozen=True)
class UnrecognizedShape:
    """A payload that matched none of the provider's known shapes."""

    payload: Any

    def describe(self, limit: int = 200) -> str:
        text = repr(self.payload)
        return text if len(text) <= limit else f"{text[:limit]}..."


def match_shape(
    payload: Any, shapes: tuple[type[ShapeT], ...]
) -> ShapeT | UnrecognizedShape:
    """Validate ``payload`` against each shape in order.

    Shapes use strict field types so that an integer field and a numeric
    string field are distinct variants rather than silently coerced.

    Returns:
        The first shape instance that validates, else ``UnrecognizedShape``.
    """
    for shape in shapes:
        try:
            return shape.model_validate(payload)
        except ValidationError:
            continue
    return UnrecognizedShape(payload)
