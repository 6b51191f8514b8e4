"""
Tests for the Typer command line interface using bundled sample data.
"""

import pytest
from typer.testing import CliRunner

from opscalendar import __version__
from opscalendar.adapters.mock_operations_client import InMemoryOperationsClient
from opscalendar.cli.app import app
from opscalendar.domain.models import DraftSaveResult

runner = CliRunner()


@pytest.fixture
def fast_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "operator_name: Pat Rivera\n"
        "drafts:\n"
        "  debounce_ms: 10\n",
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_show_mock():
    result = runner.invoke(app, ["show", "--mock"])

    assert result.exit_code == 0
    assert "Jan 13 - Jan 24, 2025" in result.output
    assert "Schedule" in result.output
    assert "Driver conflicts" in result.output


def test_show_mock_for_one_clinic():
    result = runner.invoke(app, ["show", "--mock", "--clinic", "2"])

    assert result.exit_code == 0
    assert "Driver conflicts" not in result.output


def test_assign_mock(fast_config):
    result = runner.invoke(app, ["assign", "107", "12", "--mock", "--config", fast_config])

    assert result.exit_code == 0
    assert "Draft saved" in result.output
    assert "Dev Patel" in result.output
    assert "Conflicts: 2" in result.output


def test_assign_unknown_appointment(fast_config):
    result = runner.invoke(app, ["assign", "999", "12", "--mock", "--config", fast_config])

    assert result.exit_code == 1
    assert "Unknown appointment id" in result.output


def test_assign_rejects_bad_driver(fast_config):
    result = runner.invoke(app, ["assign", "107", "someone", "--mock", "--config", fast_config])

    assert result.exit_code == 1


def test_submit_with_conflicts_can_be_declined():
    result = runner.invoke(app, ["submit", "--mock"], input="n\n")

    assert result.exit_code == 1
    assert "Submit cancelled" in result.output


def test_submit_with_yes():
    result = runner.invoke(app, ["submit", "--mock", "--yes"])

    assert result.exit_code == 0
    assert "Schedule submitted! 1 assignments processed." in result.output


def test_drivers_for_appointment():
    result = runner.invoke(app, ["drivers", "--mock", "--appointment", "103"])

    assert result.exit_code == 0
    assert "Assigned to This Clinic" in result.output
    assert "Jordan Reyes" in result.output


def test_missing_config_without_mock():
    result = runner.invoke(app, ["show"])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_assign_reports_rejected_save(monkeypatch, fast_config):
    async def rejecting_save(self, appointment_id, driver_id, week_start):
        return DraftSaveResult(success=False, message="Week is locked")

    monkeypatch.setattr(InMemoryOperationsClient, "save_draft", rejecting_save)

    result = runner.invoke(app, ["assign", "107", "12", "--mock", "--config", fast_config])

    assert result.exit_code == 1
    assert "Failed to save draft assignment" in result.output
    assert "Draft saved" not in result.output
