"""Test CLI functionality."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from sctl import __version__
from sctl.cli import cli
from sctl.templates import LOCAL_TEMPLATE

GLOBAL_TOML = """
[hosts.web1]
address = "web1.example.com"
user = "deploy"
password = "hunter2"

[hosts.web2]
address = "web2.example.com"
port = 2222
user = "deploy"

[tasks.uptime]
host = "web1"
steps = ["uptime"]
"""

LOCAL_TOML = """
[hosts.web1]
address = "10.0.0.1"
user = "root"

[tasks.deploy]
hosts = ["web1", "web2"]
workdir = "/srv/app"
before = ["uptime"]
steps = ["git pull", "make install"]
"""


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A home directory with a global config and a project directory with a local one."""
    home = tmp_path / "home"
    global_path = home / ".config" / "sctl" / "sctl.toml"
    global_path.parent.mkdir(parents=True)
    global_path.write_text(GLOBAL_TOML)

    workdir = tmp_path / "project"
    workdir.mkdir()
    (workdir / "sctl.toml").write_text(LOCAL_TOML)

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(workdir)
    return workdir


def test_cli_version():
    """Test CLI version output."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_help():
    """Test CLI help output."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("exec", "run", "hosts", "tasks", "check-config", "init"):
        assert command in result.output


def test_cli_run_help():
    runner = CliRunner()
    result = runner.invoke(cli, ["run", "--help"])
    assert result.exit_code == 0
    assert "--host" in result.output
    assert "--format" in result.output


class TestHosts:
    def test_text_listing_shows_provenance(self, project):
        result = CliRunner().invoke(cli, ["hosts"])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert "  [H] web1 -> root@10.0.0.1:22  * local (overrides global)" in lines
        assert "  [H] web2 -> deploy@web2.example.com:2222  [global]" in lines

    def test_json_listing_omits_passwords(self, project):
        result = CliRunner().invoke(cli, ["--config", str(project.parent / "home/.config/sctl/sctl.toml"),
                                          "hosts", "--format", "json"])

        assert result.exit_code == 0, result.output
        assert "hunter2" not in result.stdout
        hosts = json.loads(result.stdout)["hosts"]
        assert hosts["web1"]["address"] == "web1.example.com"
        assert hosts["web2"]["port"] == 2222
        assert "password" not in hosts["web1"]

    def test_no_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["hosts"])

        assert result.exit_code == 1
        assert "no config found" in result.output


class TestTasks:
    def test_text_listing(self, project):
        result = CliRunner().invoke(cli, ["tasks"])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert "  [T] deploy (hosts: web1, web2, steps: 2, before: uptime)  [local]" in lines
        assert "  [T] uptime (hosts: web1, steps: 1)  [global]" in lines

    def test_json_listing(self, project):
        result = CliRunner().invoke(cli, ["tasks", "--format", "json"])

        assert result.exit_code == 0, result.output
        tasks = json.loads(result.stdout)["tasks"]
        assert tasks["deploy"]["hosts"] == ["web1", "web2"]
        assert tasks["deploy"]["workdir"] == "/srv/app"
        assert tasks["deploy"]["before"] == ["uptime"]
        assert tasks["uptime"]["source"] == "global"

    def test_file_option_replaces_local(self, project, tmp_path):
        other = tmp_path / "other.toml"
        other.write_text('[tasks.lint]\nhost = "web2"\nsteps = ["make lint"]\n')
        result = CliRunner().invoke(cli, ["-f", str(other), "tasks", "--format", "json"])

        assert result.exit_code == 0, result.output
        assert set(json.loads(result.stdout)["tasks"]) == {"uptime", "lint"}


class TestCheckConfig:
    def test_valid(self, project):
        result = CliRunner().invoke(cli, ["check-config"])

        assert result.exit_code == 0, result.output
        assert "[ok] deploy (hosts: web1, web2, steps: 2)" in result.output
        assert "[OK] Configuration OK" in result.output

    def test_errors_reported(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text('[hosts.a]\nuser = "x"\n\n[tasks.t]\nhost = "a"\nafter = ["gone"]\nsteps = ["x"]\n')
        result = CliRunner().invoke(cli, ["--config", str(path), "check-config"])

        assert result.exit_code == 1
        assert "[error] a:" in result.output
        assert "-> missing address" in result.output
        assert "after task 'gone' not found" in result.output
        assert "configuration validation failed" in result.output


class TestRun:
    def test_runs_chain_with_progress(self, project, session_factory):
        with patch("sctl.executor.open_session", session_factory):
            result = CliRunner().invoke(cli, ["run", "deploy"])

        assert result.exit_code == 0, result.output
        assert session_factory.commands == [
            ("web1", "uptime"),
            ("web1", "cd /srv/app && git pull"),
            ("web1", "cd /srv/app && make install"),
            ("web2", "cd /srv/app && git pull"),
            ("web2", "cd /srv/app && make install"),
        ]
        assert "[T] Running deploy..." in result.stdout
        assert "[OK] Task completed on 2 hosts" in result.stdout

    def test_host_override(self, project, session_factory):
        with patch("sctl.executor.open_session", session_factory):
            result = CliRunner().invoke(cli, ["run", "uptime", "-H", "web2", "-H", "web1"])

        assert result.exit_code == 0, result.output
        assert session_factory.opened == ["web2", "web1"]

    def test_failure_exits_nonzero(self, project, failing_factory):
        factory = failing_factory({("web1", "cd /srv/app && git pull"): 1})
        with patch("sctl.executor.open_session", factory):
            result = CliRunner().invoke(cli, ["run", "deploy"])

        assert result.exit_code == 1
        assert "step 1 on web1 failed: command exited with status 1" in result.output
        assert "web2" not in factory.opened

    def test_json_progress(self, project, session_factory):
        with patch("sctl.executor.open_session", session_factory):
            result = CliRunner().invoke(cli, ["run", "uptime", "--format", "json"])

        assert result.exit_code == 0, result.output
        assert '"event": "run_complete"' in result.output
        assert "[T]" not in result.stdout

    def test_missing_task_name(self, project):
        result = CliRunner().invoke(cli, ["run"])
        assert result.exit_code == 1
        assert "no task name provided" in result.output

    def test_unknown_task(self, project, session_factory):
        with patch("sctl.executor.open_session", session_factory):
            result = CliRunner().invoke(cli, ["run", "nope"])
        assert result.exit_code == 1
        assert "task 'nope' not found in config" in result.output


class TestExec:
    def test_joins_command_words(self, project, session_factory):
        with patch("sctl.executor.open_session", session_factory):
            result = CliRunner().invoke(cli, ["exec", "-H", "web2", "systemctl", "status", "nginx"])

        assert result.exit_code == 0, result.output
        assert session_factory.commands == [("web2", "systemctl status nginx")]

    def test_requires_host(self, project):
        result = CliRunner().invoke(cli, ["exec", "uptime"])
        assert result.exit_code != 0

    def test_failure_names_host(self, project, failing_factory):
        factory = failing_factory({("web2", "false"): 3})
        with patch("sctl.executor.open_session", factory):
            result = CliRunner().invoke(cli, ["exec", "-H", "web2", "false"])

        assert result.exit_code == 1
        assert "command on web2 failed: command exited with status 3" in result.output

    def test_requires_command(self, project, session_factory):
        with patch("sctl.executor.open_session", session_factory):
            result = CliRunner().invoke(cli, ["exec", "-H", "web1"])
        assert result.exit_code == 1
        assert "no command provided" in result.output


class TestInit:
    def test_local(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["init", "--local"])

        assert result.exit_code == 0, result.output
        assert "[OK] Created sctl.toml" in result.output
        assert (tmp_path / "sctl.toml").read_text() == LOCAL_TEMPLATE

    def test_global(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        result = CliRunner().invoke(cli, ["init"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / ".config" / "sctl" / "sctl.toml").exists()

    def test_existing_file_needs_force(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "sctl.toml").write_text("# mine\n")

        result = CliRunner().invoke(cli, ["init", "--local"])
        assert result.exit_code == 0
        assert "Use --force to overwrite" in result.output
        assert (tmp_path / "sctl.toml").read_text() == "# mine\n"

        result = CliRunner().invoke(cli, ["init", "--local", "--force"])
        assert result.exit_code == 0
        assert (tmp_path / "sctl.toml").read_text() == LOCAL_TEMPLATE
