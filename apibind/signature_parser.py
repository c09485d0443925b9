"""Turn annotated method signatures into MethodSpecs.

Handles:
- Role markers on parameters: Body[T], Path[T], Query[T] (aliases resolved)
- The implicit receiver (skipped unless the method is a @staticmethod)
- Keyword-only parameters (kept, passed by keyword on both sides)
- @api_handler(method=..., path=...) in keyword or positional form
- Case-folding of the HTTP method token
- One-level unwrapping of the result type for the client payload
- String (forward-reference) annotations
"""

from __future__ import annotations

import ast
import builtins
import logging
from typing import Optional, Union

from .errors import (
    MissingPathOrMethod,
    MissingReturnType,
    MissingRoleAnnotation,
    UnsupportedHttpMethod,
    UnsupportedParameter,
)
from .loader import Definition, resolve_marker
from .model import HTTP_METHODS, MethodSpec, ParamSpec, Role, TypeRef

logger = logging.getLogger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

_ROLE_MARKERS: dict[str, Role] = {
    "Body": Role.BODY,
    "Path": Role.PATH,
    "Query": Role.QUERY,
}


def _parse_string_annotation(node: ast.expr) -> ast.expr:
    """Expand ``"User"`` style annotations into their expression."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            return ast.parse(node.value, mode="eval").body
        except SyntaxError:
            return node
    return node


def free_names(node: ast.expr) -> tuple[str, ...]:
    """Root names an expression needs in scope, sorted and without builtins."""
    names = {
        child.id
        for child in ast.walk(node)
        if isinstance(child, ast.Name) and not hasattr(builtins, child.id)
    }
    return tuple(sorted(names))


def type_ref(node: ast.expr) -> TypeRef:
    """Build a TypeRef from an annotation expression."""
    node = _parse_string_annotation(node)
    return TypeRef(source=ast.unparse(node), names=free_names(node))


def classify_parameter(
    definition: Definition,
    annotation: Optional[ast.expr],
    *,
    service: str,
    method: str,
    param: str,
    lineno: Optional[int] = None,
) -> tuple[Role, ast.expr]:
    """Return the role and the unmarked type of one parameter.

    Raises MissingRoleAnnotation when no Body/Path/Query marker is attached.
    """
    if annotation is not None:
        annotation = _parse_string_annotation(annotation)
    if isinstance(annotation, ast.Subscript):
        marker = resolve_marker(definition, annotation.value)
        if marker in _ROLE_MARKERS:
            return _ROLE_MARKERS[marker], annotation.slice
    raise MissingRoleAnnotation(
        "parameter must be annotated with Body[...], Path[...] or Query[...]",
        service=service,
        method=method,
        param=param,
        lineno=lineno,
    )


def unwrap_result_type(node: ast.expr) -> ast.expr:
    """First type argument of the result wrapper, or the type itself.

    ``ApiResult[User]`` -> ``User``; ``Result[Optional[User], Error]`` ->
    ``Optional[User]``; ``User`` -> ``User``.
    """
    node = _parse_string_annotation(node)
    if isinstance(node, ast.Subscript):
        inner = node.slice
        if isinstance(inner, ast.Tuple) and inner.elts:
            return inner.elts[0]
        return inner
    return node


def find_handler_marker(definition: Definition, func: FunctionNode) -> Optional[ast.expr]:
    """The @api_handler decorator on *func*, if present."""
    for decorator in func.decorator_list:
        if resolve_marker(definition, decorator) == "api_handler":
            return decorator
    return None


def _string_arg(node: Optional[ast.expr]) -> Optional[str]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def parse_route(
    marker: ast.expr, *, service: str, method: str, lineno: Optional[int] = None
) -> tuple[str, str]:
    """Extract ``(HTTP_METHOD, path)`` from an @api_handler decorator."""
    values: dict[str, Optional[ast.expr]] = {"method": None, "path": None}
    if isinstance(marker, ast.Call):
        for key, arg in zip(("method", "path"), marker.args):
            values[key] = arg
        for kw in marker.keywords:
            if kw.arg in values:
                values[kw.arg] = kw.value

    http_method = _string_arg(values["method"])
    path = _string_arg(values["path"])
    missing = [key for key, value in (("method", http_method), ("path", path)) if not value]
    if missing:
        raise MissingPathOrMethod(
            f"@api_handler requires string literal {' and '.join(missing)}",
            service=service,
            method=method,
            lineno=lineno,
        )

    http_method = http_method.upper()
    if http_method not in HTTP_METHODS:
        raise UnsupportedHttpMethod(
            f"unsupported HTTP method {http_method!r}; expected one of {', '.join(HTTP_METHODS)}",
            service=service,
            method=method,
            lineno=lineno,
        )
    return http_method, path


def _is_static(func: FunctionNode) -> bool:
    return any(
        isinstance(d, ast.Name) and d.id == "staticmethod" for d in func.decorator_list
    )


def parse_parameters(
    definition: Definition, func: FunctionNode, *, service: str
) -> list[ParamSpec]:
    """Classify every non-receiver parameter of *func* in declaration order."""
    args = func.args
    if args.vararg or args.kwarg:
        variadic = (args.vararg or args.kwarg).arg
        raise UnsupportedParameter(
            "variadic parameters cannot be bound to a request",
            service=service,
            method=func.name,
            param=variadic,
            lineno=func.lineno,
        )

    positional = [*args.posonlyargs, *args.args]
    if not _is_static(func):
        positional = positional[1:]

    params: list[ParamSpec] = []
    candidates = [(a, False) for a in positional] + [(a, True) for a in args.kwonlyargs]
    for arg, keyword_only in candidates:
        role, inner = classify_parameter(
            definition,
            arg.annotation,
            service=service,
            method=func.name,
            param=arg.arg,
            lineno=arg.lineno,
        )
        params.append(
            ParamSpec(name=arg.arg, type=type_ref(inner), role=role, keyword_only=keyword_only)
        )
    return params


def build_method_spec(
    definition: Definition, func: FunctionNode, *, service: str
) -> Optional[MethodSpec]:
    """Build the MethodSpec for one method, or None if it is not a handler."""
    marker = find_handler_marker(definition, func)
    if marker is None:
        return None

    http_method, path = parse_route(marker, service=service, method=func.name, lineno=func.lineno)
    params = parse_parameters(definition, func, service=service)

    if func.returns is None:
        raise MissingReturnType(
            "handler must declare a result type, e.g. -> ApiResult[T]",
            service=service,
            method=func.name,
            lineno=func.lineno,
        )

    docstring = ast.get_docstring(func) or ""
    spec = MethodSpec(
        name=func.name,
        http_method=http_method,
        path_template=path,
        params=tuple(params),
        result_type=type_ref(func.returns),
        payload_type=type_ref(unwrap_result_type(func.returns)),
        is_async=isinstance(func, ast.AsyncFunctionDef),
        summary=docstring.strip().splitlines()[0] if docstring.strip() else "",
        lineno=func.lineno,
    )
    logger.debug(
        "parsed %s.%s: %s %s (%d params)",
        service, spec.name, spec.http_method, spec.path_template, len(spec.params),
    )
    return spec
