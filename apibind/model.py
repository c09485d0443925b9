"""Intermediate model shared by the server and client generation passes.

The parser produces one ServiceSpec per @api class; both code generators
consume it without modifying it, so the two artifacts cannot drift apart.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

# Fixed set of methods a handler may declare (order used for diagnostics)
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH")


class Role(str, Enum):
    """Where a parameter travels on the wire."""

    BODY = "body"
    PATH = "path"
    QUERY = "query"


class TypeRef(BaseModel):
    """A type expression as written in the definition source.

    ``names`` lists the free names the expression references, so generated
    modules know what to import.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    names: tuple[str, ...] = ()


class ParamSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: TypeRef
    role: Role
    keyword_only: bool = False


class MethodSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    http_method: HttpMethod
    path_template: str
    params: tuple[ParamSpec, ...] = ()
    result_type: TypeRef
    # First type argument of result_type; what the client deserializes
    payload_type: TypeRef
    is_async: bool = True
    summary: str = ""
    lineno: Optional[int] = None

    def params_with_role(self, role: Role) -> list[ParamSpec]:
        """Parameters of one role, in declaration order."""
        return [p for p in self.params if p.role == role]

    @property
    def path_params(self) -> list[ParamSpec]:
        return self.params_with_role(Role.PATH)

    @property
    def query_params(self) -> list[ParamSpec]:
        return self.params_with_role(Role.QUERY)

    @property
    def body_param(self) -> Optional[ParamSpec]:
        body = self.params_with_role(Role.BODY)
        return body[0] if body else None


class TypeImport(BaseModel):
    """How generated code brings one definition name into scope.

    ``name`` is None for plain ``import module [as local]`` bindings.
    """

    model_config = ConfigDict(frozen=True)

    local: str
    module: str
    name: Optional[str] = None


class ServiceSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    module: str
    methods: tuple[MethodSpec, ...] = ()
    imports: tuple[TypeImport, ...] = ()
    summary: str = ""

    def method(self, name: str) -> MethodSpec:
        """Look up a method by name."""
        for spec in self.methods:
            if spec.name == name:
                return spec
        raise KeyError(name)
