"""
Fixtures for command-line tests.
"""

from functools import partial

import pytest
from click.testing import CliRunner

from zendesk_export.cli.main import cli
from zendesk_export.core.export_orchestrator import export_session

WIDE = {"COLUMNS": "200"}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner):
    """Run the CLI with a plain, wide console so output is easy to match."""

    def run(*args, input=None):
        return runner.invoke(cli, ["--no-color", *args], input=input, env=WIDE)

    return run


@pytest.fixture
def offline_session(monkeypatch, fake_zendesk):
    """Route CLI exports to the in-memory Zendesk."""
    session = partial(export_session, transport=fake_zendesk.transport)
    monkeypatch.setattr("zendesk_export.cli.commands.export.export_session", session)
    monkeypatch.setattr("zendesk_export.cli.commands.shell.export_session", session)
    return fake_zendesk
