"""
Execution of shell scripts inside the consolidated container.
"""
from typing import List, Optional
from ..MODELS.settings import LogsSettings
from ..UTILS.console import debug
from .process_runner import CommandResult, ProcessRunner, run_command

class RemoteCommandExecutor:
    """
    Runs ``bash -c`` scripts in the remote execution target, non-interactively.

    Every call is best-effort: channel failures (target unreachable, non-zero
    exit) come back as data on the result or runner, never as exceptions.
    """
    def __init__(self, settings: LogsSettings):
        """
        :param settings: Supplies the exec command and the target name.
        """
        self.settings = settings

    def command_for(self, script: str) -> List[str]:
        """
        Full local command line that runs *script* in the target.
        """
        return [
            *self.settings.remote_exec_command,
            "exec", "-T", self.settings.exec_target,
            "bash", "-c", script,
        ]

    def run(self, script: str, timeout: Optional[float] = None) -> CommandResult:
        """
        Runs *script* to completion and returns its combined output.

        :param script: Shell script for ``bash -c``.
        :param timeout: Seconds before the call is abandoned.
        :return: The result; ``error`` is set when the channel or the script failed.
        """
        result = run_command(self.command_for(script), timeout=timeout)
        if not result.ok:
            debug(self.settings.exec_target, f"Remote command ignored: {result.error}")
        return result

    def stream(self, name: str, script: str, sink) -> ProcessRunner:
        """
        Starts *script* in the target and streams its stdout into *sink*.

        :param name: Identifier of the stream, used in diagnostics.
        :param script: Shell script for ``bash -c``.
        :param sink: Receives each output line.
        :return: The runner; its ``error`` is set if the channel could not be started.
        """
        runner = ProcessRunner(name, sink)
        runner.start(self.command_for(script))
        return runner
