"""Generation-time diagnostics.

Every failure here aborts the build before any file is written. Each error
names the service, method and parameter it concerns so the message points
straight at the offending definition.
"""

from __future__ import annotations

from typing import Optional


class GenerationError(Exception):
    """Base class for all contract violations found while generating."""

    def __init__(
        self,
        message: str,
        *,
        service: Optional[str] = None,
        method: Optional[str] = None,
        param: Optional[str] = None,
        lineno: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.service = service
        self.method = method
        self.param = param
        self.lineno = lineno

    @property
    def location(self) -> str:
        """Human-readable position, e.g. ``UserService.get_user(id)``."""
        where = ".".join(part for part in (self.service, self.method) if part)
        if self.param:
            where = f"{where}({self.param})"
        if self.lineno is not None:
            where = f"{where} [line {self.lineno}]" if where else f"line {self.lineno}"
        return where

    def __str__(self) -> str:
        location = self.location
        return f"{location}: {self.message}" if location else self.message


class DefinitionNotFound(GenerationError):
    """The definition module cannot be located or read."""


class InvalidDefinition(GenerationError):
    """The definition source does not parse."""


class ServiceNotFound(GenerationError):
    """No @api class (or not the requested one) in the definition module."""


class MissingRoleAnnotation(GenerationError):
    """A non-receiver parameter carries no Body/Path/Query marker."""


class MissingPathOrMethod(GenerationError):
    """The @api_handler marker is absent, bare, or lacks method/path."""


class UnsupportedHttpMethod(GenerationError):
    """The method token is outside GET/POST/PUT/DELETE/PATCH."""


class MissingReturnType(GenerationError):
    """The handler declares no result type."""


class UnsupportedParameter(GenerationError):
    """Variadic parameters cannot be mapped onto a request."""


class MultipleBodyParameters(GenerationError):
    """More than one Body-role parameter on a single method."""


class MalformedPathTemplate(GenerationError):
    """Unbalanced braces, bad placeholder names, or a relative path."""


class PathPlaceholderMismatch(GenerationError):
    """Placeholders do not line up with the Path-role parameters."""


class DuplicateRoute(GenerationError):
    """Two methods register the same (method, path) pair."""
