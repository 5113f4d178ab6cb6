"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from clustermanager.cli import main

CONFIG_PATH = Path(__file__).parent / "data" / "standard" / "input"


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["help"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "openapi-schema" in result.output

    result = runner.invoke(main, ["help", "run"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "--port" in result.output


def test_openapi_schema(tmp_path: Path) -> None:
    runner = CliRunner()
    output = tmp_path / "openapi.json"
    config_path = CONFIG_PATH / "config.yaml"
    result = runner.invoke(
        main,
        ["openapi-schema", "-c", str(config_path), "-o", str(output)],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    schema = json.loads(output.read_text())
    assert "/v2/clusters" in schema["paths"]
    assert "/v2/templates/{name}/default" in schema["paths"]
    assert "/v2/clusters/{name}/kubeconfigs" in schema["paths"]
