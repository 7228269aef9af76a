# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Log reader for services that write plain log files inside the consolidated container.
"""
import posixpath
from typing import Optional
from ..MODELS.service import LogOptions, ServiceName
from ..MODELS.settings import LogsSettings
from ..RUNNERS.process_runner import ProcessRunner
from ..RUNNERS.remote_executor import RemoteCommandExecutor
from ..UTILS.remote_scripts import line_prefix, render_cleanup_script, render_tail_script

class ContainerLogReader:
    """
    Tails ``<base_path>/<service>.log`` inside the remote execution target.

    Each tail registers the pid of its shell in the remote PID registry so
    that ``sweep`` can end every remote tail, including followed ones.
    """
    def __init__(self,
                 executor: RemoteCommandExecutor,
                 settings: LogsSettings,
                 options: LogOptions,
                 single_service: bool,
                 base_path: str,
                 registry_path: str):
        """
        Initializes the reader.

        :param executor: Channel into the remote execution target.
        :param settings: Supplies the prefix width and the stop timeout.
        :param options: Follow and tail options of the invocation.
        :param single_service: True when the invocation asked for exactly one service.
        :param base_path: Directory of the log files, chosen from the image version.
        :param registry_path: Remote PID registry of this invocation.
        """
        self.executor = executor
        self.settings = settings
        self.options = options
        self.single_service = single_service
        self.base_path = base_path
        self.registry_path = registry_path

    def log_path(self, service: ServiceName) -> str:
        return posixpath.join(self.base_path, f"{service.value}.log")

    def prefix_for(self, service: ServiceName) -> Optional[str]:
        """
        Line prefix for *service*, or None when only one service was requested.
        """
        if self.single_service:
            return None
        return line_prefix(service.value, self.settings.prefix_width)

    def script_for(self, service: ServiceName) -> str:
        return render_tail_script(
            log_path=self.log_path(service),
            registry_path=self.registry_path,
            follow=self.options.follow,
            tail_lines=self.options.tail_lines,
            prefix=self.prefix_for(service),
        )

    def start(self, service: ServiceName, sink) -> ProcessRunner:
        """
        Starts streaming *service* into *sink* in the background.

        Stopping the returned runner does not stop the remote tail; ``sweep`` does.
        """
        return self.executor.stream(service.value, self.script_for(service), sink)

    def sweep(self):
        """
        Kills every registered remote tail and removes the registry.

        :return: The CommandResult of the remote call; failures are tolerated.
        """
        return self.executor.run(render_cleanup_script(self.registry_path), timeout=self.settings.stop_timeout * 2)
