"""Tests for the service_builder and loader modules."""

import textwrap

import pytest

from apibind.errors import (
    DefinitionNotFound,
    DuplicateRoute,
    InvalidDefinition,
    PathPlaceholderMismatch,
    ServiceNotFound,
)
from apibind.loader import find_service_classes, load_definition, parse_definition
from apibind.model import Role, TypeImport
from apibind.service_builder import build_services


def _definition(source: str, module: str = "pkg.defs"):
    return parse_definition(textwrap.dedent(source), module)


class TestSampleService:
    """The UserService definition used by the integration tests."""

    def test_method_order(self, user_service_spec):
        assert [m.name for m in user_service_spec.methods] == [
            "create_user",
            "get_user",
            "delete_user",
            "list_users",
            "get_user_post",
            "update_user",
            "echo_params",
            "reindex",
        ]

    def test_helper_absent(self, user_service_spec):
        with pytest.raises(KeyError):
            user_service_spec.method("some_internal_helper")

    def test_summary(self, user_service_spec):
        assert user_service_spec.summary == "In-memory user directory."
        assert user_service_spec.method("get_user").summary == "Fetch one user."

    def test_roles(self, user_service_spec):
        update = user_service_spec.method("update_user")
        assert [(p.name, p.role) for p in update.params] == [("id", Role.PATH), ("req", Role.BODY)]
        assert not update.is_async

    def test_method_case_folded(self, user_service_spec):
        assert user_service_spec.method("delete_user").http_method == "DELETE"

    def test_imports_from_definition_module(self, user_service_spec):
        imports = {i.local: i for i in user_service_spec.imports}
        assert imports["UserService"] == TypeImport(
            local="UserService", module="sample_service", name="UserService"
        )
        assert imports["UserId"].module == "sample_service"
        assert "ListUsersParams" in imports

    def test_definition_path_recorded(self, definition):
        assert definition.path is not None
        assert definition.path.name == "sample_service.py"


class TestBuildServices:
    """Discovery and validation across a definition module."""

    def test_no_api_class(self):
        definition = _definition("class Plain:\n    pass\n")
        with pytest.raises(ServiceNotFound):
            build_services(definition)

    def test_named_service_missing(self):
        definition = _definition('''
            from apibind import api

            @api
            class Photos:
                pass
        ''')
        with pytest.raises(ServiceNotFound, match="Albums"):
            build_services(definition, ["Albums"])

    def test_empty_service(self):
        definition = _definition('''
            from apibind import api

            @api
            class Photos:
                def helper(self):
                    pass
        ''')
        [spec] = build_services(definition)
        assert spec.methods == ()

    def test_selects_in_requested_order(self):
        definition = _definition('''
            import apibind

            @apibind.api
            class A:
                pass

            @apibind.api
            class B:
                pass
        ''')
        assert [s.name for s in build_services(definition, ["B", "A"])] == ["B", "A"]
        assert [c.name for c in find_service_classes(definition)] == ["A", "B"]

    def test_validation_runs(self):
        definition = _definition('''
            from apibind import ApiResult, api, api_handler

            @api
            class Photos:
                @api_handler(method="GET", path="/photos/{id}")
                async def get(self) -> ApiResult[str]: ...
        ''')
        with pytest.raises(PathPlaceholderMismatch):
            build_services(definition)

    def test_duplicate_route(self):
        definition = _definition('''
            from apibind import ApiResult, api, api_handler

            @api
            class Photos:
                @api_handler(method="GET", path="/photos")
                async def a(self) -> ApiResult[str]: ...

                @api_handler(method="get", path="/photos")
                async def b(self) -> ApiResult[str]: ...
        ''')
        with pytest.raises(DuplicateRoute):
            build_services(definition)

    def test_strict_names(self):
        definition = _definition('''
            from apibind import ApiResult, Path, api, api_handler

            @api
            class Photos:
                @api_handler(method="GET", path="/photos/{photo_id}")
                async def get(self, id: Path[int]) -> ApiResult[str]: ...
        ''')
        assert build_services(definition)[0].method("get").path_params[0].name == "id"
        with pytest.raises(PathPlaceholderMismatch):
            build_services(definition, strict=True)


class TestTypeImports:
    """Generated modules import type names from where the definition did."""

    def test_import_sources(self):
        definition = _definition('''
            import datetime
            import os.path
            from typing import Optional
            from apibind import ApiResult, Body, Path, api, api_handler
            from .models import Album as AlbumModel

            @api
            class Photos:
                @api_handler(method="PUT", path="/albums/{id}")
                async def put(
                    self, id: Path[int], album: Body[AlbumModel]
                ) -> ApiResult[Optional[datetime.date]]: ...
        ''')
        [spec] = build_services(definition)
        imports = {i.local: i for i in spec.imports}
        assert imports["AlbumModel"] == TypeImport(local="AlbumModel", module="pkg.models", name="Album")
        assert imports["Optional"] == TypeImport(local="Optional", module="typing", name="Optional")
        assert imports["datetime"] == TypeImport(local="datetime", module="datetime")
        assert imports["Photos"].module == "pkg.defs"
        assert "int" not in imports


class TestLoader:
    def test_syntax_error(self):
        with pytest.raises(InvalidDefinition) as info:
            parse_definition("class Broken(:\n", "defs")
        assert info.value.lineno == 1

    def test_unknown_module(self):
        with pytest.raises(DefinitionNotFound):
            load_definition("apibind_no_such_module_anywhere")

    def test_explicit_path(self, tmp_path):
        source = tmp_path / "photos_def.py"
        source.write_text("from apibind import api\n\n@api\nclass Photos:\n    pass\n")
        definition = load_definition("photos_def", path=source)
        assert definition.path == source
        assert [c.name for c in find_service_classes(definition)] == ["Photos"]

    def test_dotted_import_recorded(self):
        definition = parse_definition("import os.path\n", "defs")
        assert definition.imports["os"].imported == "os.path"
