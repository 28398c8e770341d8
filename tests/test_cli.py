from __future__ import annotations

import json

from click.testing import CliRunner

from vidtube.cli import cli
from vidtube.config import get_settings
from vidtube.ops import audit


def test_config_command_reports_without_secret_values() -> None:
    r = CliRunner().invoke(cli, ["config"])
    assert r.exit_code == 0, r.output
    report = json.loads(r.output)
    assert report["secrets"]["access_token_secret"] == "SET"
    assert report["public"]["jwt_alg"] == "HS256"
    s = get_settings()
    assert s.access_token_secret.get_secret_value() not in r.output
    assert s.refresh_token_secret.get_secret_value() not in r.output


def test_audit_command_tails_and_filters() -> None:
    audit.emit("auth.login_ok", user_id="u_1", outcome="ok")
    audit.emit("auth.login_failed", outcome="bad_password")
    audit.emit("auth.logout", user_id="u_1", outcome="ok")

    r = CliRunner().invoke(cli, ["audit", "--limit", "10", "--event", "auth.login"])
    assert r.exit_code == 0, r.output
    rows = [json.loads(line) for line in r.output.splitlines()]
    assert [row["event"] for row in rows] == ["auth.login_ok", "auth.login_failed"]

    r = CliRunner().invoke(cli, ["audit", "--limit", "1"])
    assert [json.loads(line)["event"] for line in r.output.splitlines()] == ["auth.logout"]


def test_audit_command_with_no_log_prints_nothing() -> None:
    r = CliRunner().invoke(cli, ["audit"])
    assert r.exit_code == 0
    assert r.output == ""
