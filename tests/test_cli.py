import json

from typer.testing import CliRunner

from clawkit.cli.commands import app

runner = CliRunner()


def test_config_validate_accepts_valid_file(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"channels": {"telegram": {"groups": {"-100": {"groupPolicy": "open"}}}}}))

    result = runner.invoke(app, ["config", "validate", str(path)])

    assert result.exit_code == 0
    assert "is valid" in result.output


def test_config_validate_lists_issues(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"channels": {"telegram": {"network": {"ssrf": {"bogusKey": True}}}}}))

    result = runner.invoke(app, ["config", "validate", str(path)])

    assert result.exit_code == 1
    assert "bogusKey" in result.output


def test_config_validate_missing_file(tmp_path) -> None:
    result = runner.invoke(app, ["config", "validate", str(tmp_path / "absent.json")])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_config_show_prints_camel_case(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tools": {"media": {"image": {"stripFromPrompt": True}}}}))

    result = runner.invoke(app, ["config", "show", str(path)])

    assert result.exit_code == 0
    assert '"stripFromPrompt": true' in result.output


def test_media_strip_rewrites_body() -> None:
    result = runner.invoke(
        app,
        ["media", "strip", "-c", "image", "-b", "Hello <media:image>", "-p", "/tmp/photo.jpg"],
    )

    assert result.exit_code == 0
    assert "disabled" in result.output
    assert "[image received - not processed]" in result.output
    assert "MediaPath" not in result.output


def test_media_strip_rejects_unknown_capability() -> None:
    result = runner.invoke(app, ["media", "strip", "-c", "smell"])

    assert result.exit_code == 1


def test_version_matches_installed_metadata() -> None:
    from importlib.metadata import version

    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"clawkit v{version('clawkit')}" in result.output
