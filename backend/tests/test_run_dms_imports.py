"""Argument handling for the DMS import command."""

from __future__ import annotations

import importlib.util
from datetime import date
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_dms_imports.py"
TODAY = date(2026, 10, 18)


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("run_dms_imports", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _check(cli, *argv: str):
    parser = cli.build_parser()
    return cli.check_arguments(parser, parser.parse_args(list(argv)), TODAY)


def test_date_defaults_to_today(cli) -> None:
    org_id = "6f1c2a4e-0000-4000-8000-000000000001"
    args = _check(cli, "--organization-id", org_id, "--end-date", "2026-10-20")
    assert args.date == TODAY
    assert args.end_date == date(2026, 10, 20)


def test_end_date_is_checked_against_default_date(cli, capsys) -> None:
    org_id = "6f1c2a4e-0000-4000-8000-000000000001"
    with pytest.raises(SystemExit) as excinfo:
        _check(cli, "--organization-id", org_id, "--end-date", "2026-10-17")
    assert excinfo.value.code == 2
    assert "--end-date must not be before 2026-10-18" in capsys.readouterr().err


def test_end_date_before_explicit_date_is_rejected(cli) -> None:
    org_id = "6f1c2a4e-0000-4000-8000-000000000001"
    with pytest.raises(SystemExit):
        _check(
            cli, "--organization-id", org_id, "--date", "2026-10-20", "--end-date", "2026-10-19"
        )


def test_scheduled_rejects_single_run_options(cli) -> None:
    with pytest.raises(SystemExit):
        _check(cli, "--scheduled", "--date", "2026-10-20")
    assert _check(cli, "--scheduled").date is None
