"""Tests for the CLI module."""

import json

import pytest

from jcash.cli import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("STAGE", "ENV", "VPC_CIDR", "API_STYLE", "LOG_LEVEL", "RETAIN_DATABASE"):
        monkeypatch.delenv(name, raising=False)


def test_cli_help():
    """Test CLI help display."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])
    # Help should exit with code 0
    assert exc_info.value.code == 0


def test_cli_requires_command():
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2


def test_cli_names_prod(capsys):
    result = main(["names", "--stage", "prod"])
    assert result == 0

    data = json.loads(capsys.readouterr().out)
    assert data["database_name"] == "JCashDB-prod"
    assert data["function_name"] == "jcash-handler-prod"
    assert data["api_stage_name"] == "prod"


def test_cli_names_defaults_to_dev(capsys):
    assert main(["names"]) == 0
    assert json.loads(capsys.readouterr().out)["stage"] == "dev"


def test_cli_names_invalid_stage(capsys):
    assert main(["names", "--stage", "Prod!"]) == 2
    assert "Invalid stage" in capsys.readouterr().err


def test_cli_synth(tmp_path, capsys):
    outdir = tmp_path / "cdk.out"
    result = main([
        "synth",
        "--stage", "qa",
        "--config-dir", str(tmp_path),
        "--outdir", str(outdir),
    ])
    assert result == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["stack"] == "JCash-qa"
    assert summary["resources"] > 0
    assert (outdir / "manifest.json").exists()
    assert (outdir / "JCash-qa.template.json").exists()


def test_cli_synth_invalid_config(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("VPC_CIDR", "10.0.0.0/28")
    result = main(["synth", "--stage", "qa", "--config-dir", str(tmp_path), "--outdir", str(tmp_path / "out")])

    assert result == 2
    assert "Invalid configuration" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_cli_synth_non_mapping_config(tmp_path, capsys):
    (tmp_path / "qa.yml").write_text("- network\n- api\n")
    result = main(["synth", "--stage", "qa", "--config-dir", str(tmp_path), "--outdir", str(tmp_path / "out")])

    assert result == 2
    assert "Invalid configuration" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_cli_synth_unknown_config_key(tmp_path, capsys):
    (tmp_path / "qa.yml").write_text("netwrok:\n  cidr: 10.8.0.0/16\n")
    result = main(["synth", "--stage", "qa", "--config-dir", str(tmp_path), "--outdir", str(tmp_path / "out")])

    assert result == 2
    assert "netwrok" in capsys.readouterr().err


def test_cli_synth_rejects_path_like_stage(tmp_path, capsys):
    result = main(["synth", "--stage", "../qa", "--config-dir", str(tmp_path), "--outdir", str(tmp_path / "out")])

    assert result == 2
    assert "Invalid stage" in capsys.readouterr().err
