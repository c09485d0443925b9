"""Runtime support for generated server bindings.

Generated handlers use these helpers to pull typed values out of a request
and to turn an ApiResult into a response. Decoding failures become 400 (or
415 for a body without a JSON content type) before the service method runs;
unknown paths (404) and unregistered methods on known paths (405) are left
to FastAPI's router.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, NamedTuple, Sequence

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import PydanticUserError, TypeAdapter, ValidationError

from ..result import ApiResult, InternalError, NotFound, Ok

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Request], Awaitable[Response]]


class RouteEntry(NamedTuple):
    """One (method, path, handler) registration for the host router."""

    http_method: str
    path_template: str
    handler: Handler


def _validate(adapter: TypeAdapter[Any], raw: Any, *, json: bool = False) -> Any:
    try:
        return adapter.validate_json(raw) if json else adapter.validate_python(raw)
    except ValidationError as exc:
        logger.debug("rejecting request: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def decode_path(request: Request, names: Sequence[str], adapter: TypeAdapter[Any]) -> Any:
    """Decode path placeholders, one value or a tuple in *names* order."""
    try:
        values = [request.path_params[name] for name in names]
    except KeyError as exc:
        raise HTTPException(status_code=400, detail=f"missing path value {exc.args[0]!r}") from exc
    raw = values[0] if len(values) == 1 else tuple(values)
    return _validate(adapter, raw)


def _resolve(schema: dict[str, Any], defs: dict[str, Any]) -> dict[str, Any]:
    ref = schema.get("$ref", "")
    if ref.startswith("#/$defs/"):
        return defs.get(ref.rsplit("/", 1)[-1], {})
    return schema


def _is_array(schema: dict[str, Any], defs: dict[str, Any]) -> bool:
    schema = _resolve(schema, defs)
    if schema.get("type") == "array":
        return True
    return any(_is_array(option, defs) for option in schema.get("anyOf", ()))


# adapter id -> (adapter, keys always decoded as lists, extra keys are lists)
_SEQUENCE_KEYS: dict[int, tuple[TypeAdapter[Any], frozenset[str], bool]] = {}


def sequence_keys(adapter: TypeAdapter[Any]) -> tuple[frozenset[str], bool]:
    """Query keys whose target field is a sequence.

    A key that appears once must still decode as a one-element list when the
    field is ``list[...]``. The second value reports whether undeclared keys
    (``dict[str, list[str]]`` style targets) are sequences too.
    """
    cached = _SEQUENCE_KEYS.get(id(adapter))
    if cached is not None and cached[0] is adapter:
        return cached[1], cached[2]

    try:
        schema = adapter.json_schema()
    except PydanticUserError as exc:
        logger.debug("no JSON schema for query adapter: %s", exc)
        schema = {}
    defs = schema.get("$defs", {})
    schema = _resolve(schema, defs)
    properties = schema.get("properties", {})
    keys = frozenset(name for name, field in properties.items() if _is_array(field, defs))
    extra = schema.get("additionalProperties")
    extra_lists = not properties and isinstance(extra, dict) and _is_array(extra, defs)

    _SEQUENCE_KEYS[id(adapter)] = (adapter, keys, extra_lists)
    return keys, extra_lists


def decode_query(request: Request, adapter: TypeAdapter[Any]) -> Any:
    """Decode the whole query string into one structured value.

    Absent keys are simply missing, so optional fields fall back to their
    defaults. Repeated keys become lists, and so does a single value for a
    sequence-typed field.
    """
    list_keys, extra_lists = sequence_keys(adapter)
    data: dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key in list_keys or extra_lists:
            data.setdefault(key, []).append(value)
        elif key not in data:
            data[key] = value
        elif isinstance(data[key], list):
            data[key].append(value)
        else:
            data[key] = [data[key], value]
    return _validate(adapter, data)


async def decode_body(request: Request, adapter: TypeAdapter[Any]) -> Any:
    """Decode the JSON request payload."""
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";")[0].strip().lower()
    if media_type != "application/json" and not media_type.endswith("+json"):
        raise HTTPException(
            status_code=415, detail="Expected request with `Content-Type: application/json`"
        )
    return _validate(adapter, await request.body(), json=True)


def into_response(result: ApiResult[Any], adapter: TypeAdapter[Any]) -> Response:
    """Map Ok to 200, NotFound to 404 and InternalError to 500."""
    if isinstance(result, Ok):
        return Response(
            content=adapter.dump_json(result.value),
            status_code=200,
            media_type="application/json",
        )
    if isinstance(result, (NotFound, InternalError)):
        return JSONResponse({"error": result.message}, status_code=result.status_code)
    raise TypeError(f"handler returned {type(result).__name__}, expected an ApiResult")


def bind_handler(handler: Handler, service: Any) -> Callable[[Request], Awaitable[Response]]:
    """Close *handler* over the shared service instance."""

    async def endpoint(request: Request) -> Response:
        return await handler(service, request)

    # functools.wraps would expose the (service, request) signature to FastAPI
    endpoint.__name__ = handler.__name__.lstrip("_")
    endpoint.__qualname__ = endpoint.__name__
    endpoint.__doc__ = handler.__doc__
    return endpoint


def build_router(service: Any, routes: Sequence[RouteEntry]) -> APIRouter:
    """Register every route against one shared service instance."""
    router = APIRouter()
    for entry in routes:
        endpoint = bind_handler(entry.handler, service)
        router.add_api_route(
            entry.path_template,
            endpoint,
            methods=[entry.http_method],
            name=endpoint.__name__,
        )
        logger.debug("registered %s %s", entry.http_method, entry.path_template)
    return router


def build_app(service: Any, routes: Sequence[RouteEntry], **kwargs: Any) -> FastAPI:
    """A FastAPI application serving *routes*."""
    app = FastAPI(**kwargs)
    app.include_router(build_router(service, routes))
    return app
