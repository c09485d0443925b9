"""apibind: one annotated service definition, two matched bindings.

A FastAPI request dispatcher and a typed httpx client are generated from the
same intermediate model, so their wire contract cannot drift.
"""

from .markers import Body, Path, Query, api, api_handler
from .result import ApiResult, InternalError, NotFound, Ok

__all__ = [
    "ApiResult",
    "Body",
    "InternalError",
    "NotFound",
    "Ok",
    "Path",
    "Query",
    "api",
    "api_handler",
]

__version__ = "0.1.0"
