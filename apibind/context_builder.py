"""Build Jinja2 template contexts from a ServiceSpec.

There are two independent passes over the same spec: one for the server
module (server.py.j2) and one for the client module (client.py.j2). Neither
pass mutates the ServiceSpec, and both order everything by method declaration
order, so output is deterministic.

Server handlers extract arguments in a fixed order: service handle, Path
parameters (one value, or a tuple when there are several), Query parameters,
then the Body parameter last. The service method is then called with the
arguments in their declared order.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from .model import MethodSpec, ParamSpec, ServiceSpec, TypeImport
from .naming import (
    adapter_name,
    client_class_name,
    client_error_name,
    docstring_text,
    handler_name,
    path_placeholders,
    positional_template,
    safe_local,
)

# Names the generated server handler binds itself
_SERVER_RESERVED = frozenset({"service", "request", "result"})

# Names the generated client method binds itself
_CLIENT_RESERVED = frozenset({"self"})


class _AdapterTable:
    """Module-level TypeAdapter constants, one unique name per slot.

    Names are derived from the method and slot; when two slots derive the same
    name (``get`` + ``query_y_result`` vs ``get_query_y`` + ``result``, or
    methods differing only in case) the later one gets a numeric suffix.
    """

    def __init__(self) -> None:
        self.entries: list[dict[str, str]] = []
        self._taken: set[str] = set()

    def add(self, method: str, slot: str, type_source: str) -> str:
        base = adapter_name(method, slot)
        name, n = base, 1
        while name in self._taken:
            n += 1
            name = f"{base}_{n}"
        self._taken.add(name)
        self.entries.append({"name": name, "type": type_source})
        return name


def py_literal(value: str) -> str:
    """Render a string as a double-quoted Python literal."""
    return json.dumps(value)


def import_lines(imports: Iterable[TypeImport], needed: set[str]) -> list[str]:
    """Render the import statements for *needed* local names."""
    plain: list[str] = []
    grouped: dict[str, list[str]] = {}
    for item in imports:
        if item.local not in needed:
            continue
        if item.name is None:
            if item.local == item.module.split(".")[0]:
                plain.append(f"import {item.module}")
            else:
                plain.append(f"import {item.module} as {item.local}")
            continue
        binding = item.name if item.name == item.local else f"{item.name} as {item.local}"
        grouped.setdefault(item.module, []).append(binding)

    lines = sorted(set(plain))
    for module in sorted(grouped):
        lines.append(f"from {module} import {', '.join(sorted(grouped[module]))}")
    return lines


def _type_names(method: MethodSpec) -> set[str]:
    names = set(method.payload_type.names)
    for param in method.params:
        names.update(param.type.names)
    return names


def _summary(method: MethodSpec) -> str:
    return docstring_text(method.summary) if method.summary else ""


def _route(method: MethodSpec) -> str:
    return docstring_text(f"{method.http_method} {method.path_template}")


def _call_args(method: MethodSpec, locals_: dict[str, str]) -> list[str]:
    """Arguments in declared order; keyword-only ones passed by keyword."""
    args = []
    for param in method.params:
        local = locals_[param.name]
        args.append(f"{param.name}={local}" if param.keyword_only else local)
    return args


def _server_method(method: MethodSpec, adapters: _AdapterTable) -> dict[str, Any]:
    """Handler context for one method."""
    locals_ = {p.name: safe_local(p.name, _SERVER_RESERVED) for p in method.params}
    extract: list[str] = []

    path_params = method.path_params
    if path_params:
        placeholders = path_placeholders(method.path_template)
        if len(path_params) == 1:
            adapter_type = path_params[0].type.source
            names = f"({py_literal(placeholders[0])},)"
        else:
            adapter_type = f"tuple[{', '.join(p.type.source for p in path_params)}]"
            names = f"({', '.join(py_literal(h) for h in placeholders)})"
        name = adapters.add(method.name, "path", adapter_type)
        targets = ", ".join(locals_[p.name] for p in path_params)
        extract.append(f"{targets} = decode_path(request, {names}, {name})")

    for param in method.query_params:
        name = adapters.add(method.name, f"query_{param.name}", param.type.source)
        extract.append(f"{locals_[param.name]} = decode_query(request, {name})")

    body = method.body_param
    if body is not None:
        name = adapters.add(method.name, "body", body.type.source)
        extract.append(f"{locals_[body.name]} = await decode_body(request, {name})")

    result_adapter = adapters.add(method.name, "result", method.payload_type.source)

    args = _call_args(method, locals_)
    if method.is_async:
        call = f"await service.{method.name}({', '.join(args)})"
    else:
        call = f"await run_in_threadpool({', '.join([f'service.{method.name}', *args])})"

    return {
        "name": method.name,
        "handler": handler_name(method.name),
        "http_method": method.http_method,
        "http_method_literal": py_literal(method.http_method),
        "path_literal": py_literal(method.path_template),
        "route": _route(method),
        "summary": _summary(method),
        "extract": extract,
        "call": call,
        "result_adapter": result_adapter,
    }


def build_server_context(service: ServiceSpec) -> dict[str, Any]:
    """Template context for the server binding module."""
    adapters = _AdapterTable()
    methods = [_server_method(m, adapters) for m in service.methods]

    runtime = {"RouteEntry", "build_app", "build_router", "into_response"}
    if any(m.path_params for m in service.methods):
        runtime.add("decode_path")
    if any(m.query_params for m in service.methods):
        runtime.add("decode_query")
    if any(m.body_param for m in service.methods):
        runtime.add("decode_body")

    needed = {service.name}
    for method in service.methods:
        needed |= _type_names(method)

    return {
        "service": service.name,
        "module": service.module,
        "summary": docstring_text(service.summary) if service.summary else "",
        "imports": import_lines(service.imports, needed),
        "runtime_imports": sorted(runtime),
        "uses_threadpool": any(not m.is_async for m in service.methods),
        "adapters": adapters.entries,
        "methods": methods,
        "route_count": len(methods),
    }


def _client_signature(method: MethodSpec, locals_: dict[str, str]) -> str:
    parts = ["self"]
    positional = [p for p in method.params if not p.keyword_only]
    keyword = [p for p in method.params if p.keyword_only]
    parts.extend(f"{locals_[p.name]}: {p.type.source}" for p in positional)
    if keyword:
        parts.append("*")
        parts.extend(f"{locals_[p.name]}: {p.type.source}" for p in keyword)
    return ", ".join(parts)


def _pairs(
    params: list[ParamSpec],
    method: MethodSpec,
    slot: str,
    locals_: dict[str, str],
    adapters: _AdapterTable,
) -> str:
    """``[(_ADAPTER, value), ...]`` for params of one role."""
    pairs = []
    for param in params:
        name = adapters.add(method.name, f"{slot}_{param.name}", param.type.source)
        pairs.append(f"({name}, {locals_[param.name]})")
    return f"[{', '.join(pairs)}]"


def _client_method(method: MethodSpec, adapters: _AdapterTable) -> dict[str, Any]:
    """Call-wrapper context for one method."""
    locals_ = {p.name: safe_local(p.name, _CLIENT_RESERVED) for p in method.params}

    send_kwargs: list[str] = []
    if method.path_params:
        send_kwargs.append(
            "path=" + _pairs(method.path_params, method, "path", locals_, adapters)
        )
    if method.query_params:
        send_kwargs.append(
            "query=" + _pairs(method.query_params, method, "query", locals_, adapters)
        )
    body = method.body_param
    if body is not None:
        name = adapters.add(method.name, "body", body.type.source)
        send_kwargs.append(f"body=({name}, {locals_[body.name]})")

    result_adapter = adapters.add(method.name, "result", method.payload_type.source)
    send_kwargs.append(f"result={result_adapter}")

    return {
        "name": method.name,
        "signature": _client_signature(method, locals_),
        "return_type": method.payload_type.source,
        "http_method_literal": py_literal(method.http_method),
        "template_literal": py_literal(positional_template(method.path_template)),
        "route": _route(method),
        "summary": _summary(method),
        "send_kwargs": send_kwargs,
    }


def build_client_context(service: ServiceSpec) -> dict[str, Any]:
    """Template context for the client binding module."""
    adapters = _AdapterTable()
    methods = [_client_method(m, adapters) for m in service.methods]

    needed: set[str] = set()
    for method in service.methods:
        needed |= _type_names(method)

    return {
        "service": service.name,
        "module": service.module,
        "client_class": client_class_name(service.name),
        "error_class": client_error_name(service.name),
        "imports": import_lines(service.imports, needed),
        "adapters": adapters.entries,
        "methods": methods,
        "method_count": len(methods),
    }
