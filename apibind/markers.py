"""Definition-time markers.

The generator reads these from source without importing the definition.
At runtime they are inert: the decorators only record their arguments, and
``Body[T]`` / ``Path[T]`` / ``Query[T]`` evaluate to ``Annotated[T, role]``
so the definition module stays importable and type-checkable.
"""

from __future__ import annotations

from typing import Annotated, Any, Callable, Optional, TypeVar

from .model import Role

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)


class _RoleMarker:
    role: Role

    def __class_getitem__(cls, item: Any) -> Any:
        return Annotated[item, cls.role]


class Body(_RoleMarker):
    """Parameter decoded from the JSON request payload."""

    role = Role.BODY


class Path(_RoleMarker):
    """Parameter substituted into a ``{placeholder}`` of the path."""

    role = Role.PATH


class Query(_RoleMarker):
    """Structured parameter carried in the URL query string."""

    role = Role.QUERY


def api(cls: C) -> C:
    """Mark a class as a service whose @api_handler methods get bindings."""
    cls.__apibind_service__ = True
    return cls


def api_handler(
    method: Optional[str] = None, path: Optional[str] = None
) -> Callable[[F], F]:
    """Bind a service method to an HTTP method and path template."""

    def decorator(func: F) -> F:
        func.__apibind_route__ = {"method": method, "path": path}
        return func

    return decorator
