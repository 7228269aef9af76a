"""
Log reader for services whose containers the orchestrator manages directly.
"""
from typing import List
from ..MODELS.service import LogOptions, ServiceName
from ..MODELS.settings import LogsSettings
from ..RUNNERS.process_runner import ProcessRunner

class OrchestratedLogReader:
    """
    Streams logs through the orchestrator's own ``logs`` command.
    """
    def __init__(self, settings: LogsSettings, options: LogOptions, single_service: bool):
        """
        :param settings: Supplies the orchestrator command.
        :param options: Follow and tail options of the invocation.
        :param single_service: True when the invocation asked for exactly one service.
        """
        self.settings = settings
        self.options = options
        self.single_service = single_service

    def build_flags(self) -> List[str]:
        """
        Flags for the orchestrator's logs command.

        Without ``--tail`` the orchestrator prints the whole history.
        """
        flags = ["--no-color"]
        if self.options.follow:
            flags.append("-f")
        if not self.options.tail_all:
            flags.append(f"--tail={self.options.tail_lines}")
        if self.single_service:
            flags.append("--no-log-prefix")
        return flags

    def command_for(self, service: ServiceName) -> List[str]:
        return [*self.settings.orchestrator_command, "logs", *self.build_flags(), service.value]

    def start(self, service: ServiceName, sink) -> ProcessRunner:
        """
        Starts streaming *service* into *sink* in the background.

        A command that cannot start leaves the runner with ``error`` set and no output.
        """
        runner = ProcessRunner(service.value, sink)
        runner.start(self.command_for(service))
        return runner
