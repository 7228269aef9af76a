"""
Fixtures standing in for the orchestrator and the consolidated container.

The fake exec command runs the ``bash -c`` payload on this machine, so the
real tail scripts, PID registry, and cleanup sweep run against local files.
"""
import stat
import pytest
from lmux.MODELS.settings import LogsSettings

FAKE_ORCHESTRATOR = """#!/bin/sh
# Stand-in for "docker compose logs ... <service>".
for service; do :; done
sleep "${LMUX_FAKE_DELAY:-0}"
echo "$service orchestrated $*"
case " $* " in
  *" -f "*) exec sleep 617 ;;
esac
"""

FAKE_EXEC = """#!/bin/sh
# Stand-in for "docker compose exec -T <target> bash -c <script>".
shift 3
exec "$@"
"""

LOG_LINES = 30


def _write_script(path, content):
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def log_dir(tmp_path):
    """Log directory with 30-line files for chat, web and document-updater."""
    d = tmp_path / "logs"
    d.mkdir()
    for name in ("chat", "web", "document-updater"):
        (d / f"{name}.log").write_text("".join(f"{name} line {i}\n" for i in range(1, LOG_LINES + 1)))
    return d


@pytest.fixture
def settings(tmp_path, log_dir):
    """Settings wired to the fake commands and the local log directory."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return LogsSettings(
        orchestrator_command=[_write_script(bin_dir / "orchestrator", FAKE_ORCHESTRATOR)],
        remote_exec_command=[_write_script(bin_dir / "exec", FAKE_EXEC)],
        log_base_path=str(log_dir),
        legacy_log_base_path=str(tmp_path / "legacy"),
        pid_registry_path=str(tmp_path / "registry-{pid}.pids"),
        image_version="5.0.0",
        stop_timeout=3.0,
    )


@pytest.fixture
def registry_file(settings):
    """Path of the PID registry used by multiplexers created in this process."""
    return settings.registry_path()
