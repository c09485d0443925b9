"""Contract checks run on the intermediate model before any code is rendered.

Invariants:
  A) Path templates are absolute, brace-balanced, and every placeholder is a
     distinct identifier
  B) One placeholder per Path-role parameter; the k-th parameter fills the
     k-th placeholder (strict mode also requires matching names)
  C) At most one Body-role parameter per method
  D) No two methods of a service register the same (method, path) pair;
     paths differing only in placeholder names count as the same path

Violations are collected rather than raised one by one, so ``--check`` can
report everything wrong with a definition in a single run.
"""

from __future__ import annotations

import logging

from .errors import (
    DuplicateRoute,
    GenerationError,
    MalformedPathTemplate,
    MultipleBodyParameters,
    PathPlaceholderMismatch,
)
from .model import MethodSpec, Role, ServiceSpec
from .naming import PLACEHOLDER_RE, path_placeholders, positional_template

logger = logging.getLogger(__name__)


def template_violations(spec: MethodSpec, service: str) -> list[GenerationError]:
    """Check the shape of the path template (invariant A)."""
    template = spec.path_template
    where = {"service": service, "method": spec.name, "lineno": spec.lineno}
    violations: list[GenerationError] = []

    if not template.startswith("/"):
        violations.append(MalformedPathTemplate(f"path {template!r} must start with '/'", **where))

    leftover = PLACEHOLDER_RE.sub("", template)
    if "{" in leftover or "}" in leftover:
        violations.append(MalformedPathTemplate(f"unbalanced braces in path {template!r}", **where))

    seen: set[str] = set()
    for name in path_placeholders(template):
        if not name.isidentifier():
            violations.append(
                MalformedPathTemplate(f"placeholder {{{name}}} is not a valid identifier", **where)
            )
        elif name in seen:
            violations.append(
                MalformedPathTemplate(f"placeholder {{{name}}} appears more than once", **where)
            )
        seen.add(name)
    return violations


def method_violations(spec: MethodSpec, service: str, strict: bool = False) -> list[GenerationError]:
    """Check one method (invariants A-C)."""
    violations = template_violations(spec, service)

    placeholders = path_placeholders(spec.path_template)
    path_params = spec.path_params
    if len(placeholders) != len(path_params):
        violations.append(
            PathPlaceholderMismatch(
                f"path {spec.path_template!r} has {len(placeholders)} placeholder(s) "
                f"but {len(path_params)} Path-role parameter(s)",
                service=service,
                method=spec.name,
                lineno=spec.lineno,
            )
        )
    elif strict:
        for placeholder, param in zip(placeholders, path_params):
            if placeholder != param.name:
                violations.append(
                    PathPlaceholderMismatch(
                        f"placeholder {{{placeholder}}} is filled by parameter {param.name!r}",
                        service=service,
                        method=spec.name,
                        param=param.name,
                        lineno=spec.lineno,
                    )
                )

    bodies = spec.params_with_role(Role.BODY)
    if len(bodies) > 1:
        violations.append(
            MultipleBodyParameters(
                "at most one Body-role parameter is allowed, found "
                + ", ".join(p.name for p in bodies),
                service=service,
                method=spec.name,
                param=bodies[1].name,
                lineno=spec.lineno,
            )
        )
    return violations


def service_violations(spec: ServiceSpec, strict: bool = False) -> list[GenerationError]:
    """Check every method of a service, then the route table (invariant D)."""
    violations: list[GenerationError] = []
    routes: dict[tuple[str, str], str] = {}
    for method in spec.methods:
        violations.extend(method_violations(method, spec.name, strict=strict))
        key = (method.http_method, positional_template(method.path_template))
        if key in routes:
            violations.append(
                DuplicateRoute(
                    f"{method.http_method} {method.path_template} is already registered "
                    f"by {routes[key]!r}",
                    service=spec.name,
                    method=method.name,
                    lineno=method.lineno,
                )
            )
        else:
            routes[key] = method.name
    return violations


def validate_service(spec: ServiceSpec, strict: bool = False) -> ServiceSpec:
    """Raise the first violation found in *spec*, or return it unchanged."""
    violations = service_violations(spec, strict=strict)
    for violation in violations[1:]:
        logger.debug("additional violation: %s", violation)
    if violations:
        raise violations[0]
    return spec
