"""Tests for the apibind command line."""

import textwrap

import pytest
from typer.testing import CliRunner

from apibind.cli import app

runner = CliRunner()

MISMATCHED = textwrap.dedent('''
    from apibind import ApiResult, Path, api, api_handler


    @api
    class Photos:
        @api_handler(method="GET", path="/photos/{photo_id}")
        async def get(self, id: Path[int]) -> ApiResult[str]: ...

        @api_handler(method="GET", path="/photos/{photo_id}")
        async def again(self, photo_id: Path[int]) -> ApiResult[str]: ...
''')


@pytest.fixture
def mismatched(tmp_path):
    source = tmp_path / "photos_defs.py"
    source.write_text(MISMATCHED)
    return source


class TestGenerate:
    def test_writes_bindings(self, tmp_path):
        result = runner.invoke(app, ["sample_service", "--out", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "user_service_server.py").exists()
        assert (tmp_path / "user_service_client.py").exists()
        assert "8 route(s)" in result.output

    def test_client_only(self, tmp_path):
        result = runner.invoke(app, ["sample_service", "-o", str(tmp_path), "--client-only"])
        assert result.exit_code == 0, result.output
        assert not (tmp_path / "user_service_server.py").exists()
        assert (tmp_path / "user_service_client.py").exists()

    def test_output_dir_from_environment(self, tmp_path):
        out = tmp_path / "env_out"
        result = runner.invoke(app, ["sample_service"], env={"APIBIND_OUTPUT_DIR": str(out)})
        assert result.exit_code == 0, result.output
        assert (out / "user_service_server.py").exists()

    def test_exclusive_flags(self, tmp_path):
        result = runner.invoke(
            app, ["sample_service", "-o", str(tmp_path), "--server-only", "--client-only"]
        )
        assert result.exit_code != 0
        assert not list(tmp_path.iterdir())

    def test_unknown_module(self, tmp_path):
        result = runner.invoke(app, ["apibind_no_such_module_anywhere", "-o", str(tmp_path)])
        assert result.exit_code == 1
        assert "error" in result.output

    def test_unknown_service(self, tmp_path):
        result = runner.invoke(app, ["sample_service", "-o", str(tmp_path), "-s", "Nope"])
        assert result.exit_code == 1
        assert not list(tmp_path.iterdir())

    def test_invalid_definition_writes_nothing(self, tmp_path, mismatched):
        out = tmp_path / "out"
        result = runner.invoke(
            app, ["photos_defs", "--source", str(mismatched), "-o", str(out)]
        )
        assert result.exit_code == 1
        assert "already registered" in result.output
        assert not out.exists()


class TestCheck:
    """--check validates and reports without writing."""

    def test_valid(self, tmp_path):
        result = runner.invoke(app, ["sample_service", "-o", str(tmp_path), "--check"])
        assert result.exit_code == 0, result.output
        assert "UserService" in result.output
        assert not list(tmp_path.iterdir())

    def test_unknown_service_reported(self):
        result = runner.invoke(
            app, ["sample_service", "--check", "-s", "UserService", "-s", "Missing"]
        )
        assert result.exit_code == 1
        assert "'Missing' not found" in result.output
        assert "ok UserService" in result.output

    def test_reports_every_violation(self, mismatched):
        result = runner.invoke(
            app, ["photos_defs", "--source", str(mismatched), "--check", "--strict-paths"]
        )
        assert result.exit_code == 1
        assert "already registered" in result.output
        assert "is filled by parameter" in result.output

    def test_positional_paths_default(self, mismatched):
        result = runner.invoke(app, ["photos_defs", "--source", str(mismatched), "--check"])
        assert result.exit_code == 1
        assert "is filled by parameter" not in result.output
