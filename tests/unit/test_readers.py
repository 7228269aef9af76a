"""
Unit tests for the remote shell scripts and both log readers.
"""
import pytest
from lmux.MODELS.service import LogOptions, ServiceName
from lmux.MODELS.settings import LogsSettings
from lmux.READERS.container_reader import ContainerLogReader
from lmux.READERS.orchestrated_reader import OrchestratedLogReader
from lmux.RUNNERS.remote_executor import RemoteCommandExecutor
from lmux.UTILS.remote_scripts import line_prefix, render_cleanup_script, render_tail_script


class TestLinePrefix:
    """Tests for the fixed-width service column."""

    def test_padded(self):
        assert line_prefix("web", 13) == "web          | "

    def test_truncated(self):
        assert line_prefix("document-updater", 13) == "document-upda| "

    def test_width(self):
        for name in ("chat", "project-history", "real-time"):
            assert len(line_prefix(name, 13)) == 15


class TestTailScript:
    """Tests for render_tail_script."""

    def test_existence_check_before_registration(self):
        script = render_tail_script("/var/log/overleaf/web.log", "/tmp/reg.pids", False, 20)
        lines = script.splitlines()
        assert lines[0] == "[ -f /var/log/overleaf/web.log ] || exit 0"
        assert lines[1] == "echo $$ >> /tmp/reg.pids"
        assert lines[2].startswith("tail ")

    def test_numeric_tail(self):
        script = render_tail_script("/logs/web.log", "/tmp/reg.pids", False, 20)
        tail_line = script.splitlines()[2]
        assert tail_line == "tail -n 20 /logs/web.log"
        assert "--pid" not in script

    def test_all_starts_at_first_line(self):
        script = render_tail_script("/logs/web.log", "/tmp/reg.pids", False, "all")
        assert "tail -n +1 /logs/web.log" in script

    def test_follow_is_bound_to_registered_shell(self):
        script = render_tail_script("/logs/web.log", "/tmp/reg.pids", True, "all")
        assert "tail -n +1 -f --pid=$$ /logs/web.log" in script

    def test_no_prefix(self):
        script = render_tail_script("/logs/web.log", "/tmp/reg.pids", True, 5)
        assert "sed" not in script

    def test_prefix(self):
        script = render_tail_script("/logs/web.log", "/tmp/reg.pids", True, 5, prefix="web          | ")
        assert script.rstrip().endswith("| sed -u \"s/^/\"'web          | '\"/\"")

    def test_prefix_escapes_sed_specials(self):
        script = render_tail_script("/logs/a.log", "/tmp/reg.pids", False, 5, prefix="a/b&c")
        assert "a\\/b\\&c" in script

    def test_paths_are_quoted(self):
        script = render_tail_script("/logs dir/web.log", "/tmp/reg dir/r.pids", False, 5)
        assert "'/logs dir/web.log'" in script
        assert "'/tmp/reg dir/r.pids'" in script


class TestCleanupScript:
    """Tests for render_cleanup_script."""

    def test_kills_and_removes(self):
        script = render_cleanup_script("/tmp/reg.pids")
        assert "if [ -f /tmp/reg.pids ]; then" in script
        assert 'kill "$pid" 2>/dev/null || true' in script
        assert "rm -f /tmp/reg.pids" in script
        assert script.rstrip().endswith("exit 0")


class TestOrchestratedLogReader:
    """Tests for OrchestratedLogReader."""

    @pytest.mark.parametrize("follow,tail_lines,single,expected", [
        (False, 20, False, ["--no-color", "--tail=20"]),
        (True, 20, False, ["--no-color", "-f", "--tail=20"]),
        (False, "all", False, ["--no-color"]),
        (True, "all", True, ["--no-color", "-f", "--no-log-prefix"]),
        (False, 5, True, ["--no-color", "--tail=5", "--no-log-prefix"]),
    ])
    def test_flags(self, follow, tail_lines, single, expected):
        reader = OrchestratedLogReader(LogsSettings(), LogOptions(follow=follow, tail_lines=tail_lines), single)
        assert reader.build_flags() == expected

    def test_command(self):
        settings = LogsSettings(orchestrator_command=["bin/docker-compose"])
        reader = OrchestratedLogReader(settings, LogOptions(), single_service=False)
        assert reader.command_for(ServiceName.MONGO) == ["bin/docker-compose", "logs", "--no-color", "--tail=20", "mongo"]


class TestContainerLogReader:
    """Tests for ContainerLogReader."""

    def _reader(self, single_service=False, options=None):
        settings = LogsSettings()
        return ContainerLogReader(
            RemoteCommandExecutor(settings),
            settings,
            options or LogOptions(),
            single_service,
            base_path="/var/log/sharelatex",
            registry_path="/tmp/reg.pids",
        )

    def test_log_path(self):
        assert self._reader().log_path(ServiceName.REAL_TIME) == "/var/log/sharelatex/real-time.log"

    def test_prefix_only_for_many_services(self):
        assert self._reader(single_service=True).prefix_for(ServiceName.WEB) is None
        assert self._reader(single_service=False).prefix_for(ServiceName.WEB) == "web          | "

    def test_script(self):
        script = self._reader(options=LogOptions(follow=True, tail_lines="all")).script_for(ServiceName.CHAT)
        assert "[ -f /var/log/sharelatex/chat.log ] || exit 0" in script
        assert "echo $$ >> /tmp/reg.pids" in script
        assert "tail -n +1 -f --pid=$$ /var/log/sharelatex/chat.log" in script

    def test_exec_command(self):
        executor = RemoteCommandExecutor(LogsSettings())
        assert executor.command_for("echo hi") == [
            "docker", "compose", "exec", "-T", "sharelatex", "bash", "-c", "echo hi",
        ]
