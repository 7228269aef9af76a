"""
Models for the runtime configuration of the log multiplexer.
"""
import os
from typing import List, Optional
from pydantic import BaseModel, Field, PositiveFloat, PositiveInt

# Image major version from which logs live under the current base path.
CURRENT_LAYOUT_MAJOR = 5

class LogsSettings(BaseModel):
    """
    Where to find the orchestrator, the consolidated container, and its log files.
    """
    # External commands
    orchestrator_command: List[str] = Field(default_factory=lambda: ["docker", "compose"])
    remote_exec_command: List[str] = Field(default_factory=lambda: ["docker", "compose"])
    exec_target: str = "sharelatex"

    # Image version signal
    image_version: Optional[str] = None
    version_file: str = os.path.join("config", "version")

    # Remote paths
    log_base_path: str = "/var/log/overleaf"
    legacy_log_base_path: str = "/var/log/sharelatex"
    pid_registry_path: str = "/tmp/lmux-logs-{pid}.pids"

    # Output
    prefix_width: PositiveInt = 13
    output_buffer_lines: PositiveInt = 1024
    stop_timeout: PositiveFloat = 5.0
    verbose: bool = False

    def base_path_for(self, major_version: int) -> str:
        """
        Picks the remote log directory for an image major version.

        :param major_version: Major component of the deployed image version.
        :return: The base directory holding ``<service>.log`` files.
        """
        if major_version >= CURRENT_LAYOUT_MAJOR:
            return self.log_base_path
        return self.legacy_log_base_path

    def registry_path(self, pid: Optional[int] = None) -> str:
        """
        Resolves the remote PID registry path for this invocation.
        """
        return self.pid_registry_path.replace("{pid}", str(pid if pid is not None else os.getpid()))
