"""The three-way result every service handler returns.

``Ok`` maps to 200 with the payload, ``NotFound`` to 404 and
``InternalError`` to 500, both with ``{"error": message}``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ApiResult(Generic[T]):
    """Base of the handler outcomes; annotate handlers as ``ApiResult[T]``."""

    __slots__ = ()

    status_code: int


@dataclass(frozen=True)
class Ok(ApiResult[T]):
    value: T

    status_code = 200


@dataclass(frozen=True)
class NotFound(ApiResult[Any]):
    message: str

    status_code = 404


@dataclass(frozen=True)
class InternalError(ApiResult[Any]):
    message: str

    status_code = 500
