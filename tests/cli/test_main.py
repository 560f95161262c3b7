"""
Test main CLI functionality
"""

from click.testing import CliRunner

from zendesk_export.cli.main import cli


def test_cli_help():
    """Test main CLI help display"""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Zendesk Support data exporter" in result.output


def test_cli_version():
    """Test CLI version display"""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "1.0.0" in result.output


def test_cli_verbose_flag():
    runner = CliRunner()
    result = runner.invoke(cli, ["--verbose", "--help"])

    assert result.exit_code == 0


def test_cli_subcommands_available():
    """Test that all expected subcommands are available"""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("users", "tickets", "shell", "read", "clean", "config"):
        assert command in result.output


def test_tickets_command_help():
    runner = CliRunner()
    result = runner.invoke(cli, ["tickets", "--help"])

    assert result.exit_code == 0
    assert "ID|all" in result.output
    assert "--max-concurrent" in result.output
    assert "--output" in result.output


def test_unknown_command():
    runner = CliRunner()
    result = runner.invoke(cli, ["organizations", "1"])

    assert result.exit_code == 2
