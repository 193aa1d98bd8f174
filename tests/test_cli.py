"""Tests for the CLI argument parsing and scout command."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from lead_scout.cli import build_parser, cmd_scout
from lead_scout.config import ScoutConfig


def test_scout_flags():
    args = build_parser().parse_args(["scout", "--dry-run", "--max", "5"])
    assert args.dry_run is True
    assert args.max == 5


def test_lead_commands_require_uuid():
    lead_id = uuid4()
    assert build_parser().parse_args(["process-lead", str(lead_id)]).lead_id == lead_id

    with pytest.raises(SystemExit):
        build_parser().parse_args(["process-lead", "not-a-uuid"])


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@patch("lead_scout.cli.build_scout")
@patch("lead_scout.cli.get_connection")
def test_cmd_scout_applies_max_override(get_connection, build_scout, capsys):
    get_connection.return_value = MagicMock()
    report = build_scout.return_value.run.return_value
    report.success = False
    report.to_response.return_value = {"success": False}
    config = ScoutConfig()
    args = build_parser().parse_args(["scout", "--max", "0"])

    exit_code = cmd_scout(args, config)

    assert exit_code == 1
    assert config.max_posts_per_run == 0
    assert '"success": false' in capsys.readouterr().out
