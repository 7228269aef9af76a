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
Execution of system processes with output streaming and lifecycle management.
"""
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
import psutil

from ..UTILS.console import debug, is_verbose

@dataclass
class CommandResult:
    """
    Outcome of a best-effort command. Failures are carried as data, never raised.
    """
    output: bytes = b""
    returncode: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0

    @property
    def text(self) -> str:
        return self.output.decode("utf-8", errors="replace")

def run_command(command: List[str], timeout: Optional[float] = None) -> CommandResult:
    """
    Runs a command to completion with stderr merged into stdout.

    Args:
        command (List[str]): Command and arguments to execute.
        timeout (Optional[float]): Seconds before the command is abandoned.

    Returns:
        CommandResult: Output produced so far and, on any failure, an error description.
    """
    try:
        p = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError:
        return CommandResult(error=f"Command not found: {command[0]}")
    except subprocess.TimeoutExpired as e:
        return CommandResult(output=e.output or b"", error=f"Command timed out after {timeout}s")
    except OSError as e:
        return CommandResult(error=f"Command could not run: {e}")

    if p.returncode != 0:
        return CommandResult(
            output=p.stdout,
            returncode=p.returncode,
            error=f"Command failed ({p.returncode}): {' '.join(command)}",
        )
    return CommandResult(output=p.stdout, returncode=0)

class ProcessRunner:
    """
    Runs a single system process and pumps its stdout, line by line, into a sink.
    """
    def __init__(self, name: str, sink):
        """
        Initializes the process runner.

        Args:
            name (str): Identifier for the process, used in diagnostics.
            sink: Object with a ``put(bytes) -> bool`` method receiving each output line.
        """
        self.name = name
        self.sink = sink
        self.process: Optional[subprocess.Popen] = None
        self.error: Optional[str] = None
        self._pump: Optional[threading.Thread] = None

    def start(self, command: List[str], env: Optional[Dict[str, str]] = None) -> bool:
        """
        Starts the process and its output pump.

        Launch failures are recorded in ``self.error`` instead of being raised,
        so a broken command only silences this runner.

        Args:
            command (List[str]): Command and arguments to execute.
            env (Optional[Dict[str, str]]): Environment for the process; inherits ours when None.

        Returns:
            bool: True if the process was started.
        """
        debug(self.name, f"Starting command: {' '.join(command)}")

        try:
            self.process = subprocess.Popen(
                command,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                # stderr never enters the merged output
                stderr=None if is_verbose() else subprocess.DEVNULL,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False,
            )
        except OSError as e:
            self.error = f"Failed to start: {e}"
            debug(self.name, self.error)
            return False

        self._pump = threading.Thread(target=self._pump_output, name=f"lmux-{self.name}", daemon=True)
        self._pump.start()
        return True

    def _pump_output(self):
        """
        Copies output lines to the sink until EOF or until the sink stops accepting.
        """
        stdout = self.process.stdout
        try:
            for line in iter(stdout.readline, b""):
                if not self.sink.put(line):
                    break
        except (OSError, ValueError) as e:
            # The pipe was closed under us while stopping.
            debug(self.name, f"Output stream closed: {e}")
        finally:
            stdout.close()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Waits for the output stream to end.

        Returns:
            bool: True if the stream has ended (or never started).
        """
        if self._pump is None:
            return True
        self._pump.join(timeout)
        return not self._pump.is_alive()

    def is_streaming(self) -> bool:
        return self._pump is not None and self._pump.is_alive()

    def terminate(self) -> List[psutil.Process]:
        """
        Sends SIGTERM to the process and all of its descendants without waiting.

        Returns:
            List[psutil.Process]: The descendants that were signalled.
        """
        if self.process is None or self.process.poll() is not None:
            return []

        debug(self.name, "Stopping process...")
        try:
            children = psutil.Process(self.process.pid).children(recursive=True)
        except psutil.NoSuchProcess:
            children = []

        self.process.terminate()
        for child in children:
            try:
                child.terminate()
            except psutil.NoSuchProcess:
                pass
        return children

    def wait_or_kill(self, timeout: float):
        """
        Waits for a terminated process to exit, killing it after *timeout* seconds.
        """
        if self.process is None:
            return
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            debug(self.name, "Process did not terminate, killing...")
            self.process.kill()
            self.process.wait()

    def stop(self, timeout: float = 5.0):
        """
        Stops the process and all of its descendants: SIGTERM first, SIGKILL if they linger.

        Safe to call on a runner that never started or has already exited.

        Args:
            timeout (float): Seconds to wait for termination before killing.
        """
        stop_runners([self], timeout)

    def is_running(self) -> bool:
        """
        Checks if the process is currently running.

        Returns:
            bool: True if running, False otherwise.
        """
        return self.process is not None and self.process.poll() is None

    def get_exit_code(self) -> Optional[int]:
        """
        Gets the exit code of the process.

        Returns:
            Optional[int]: Exit code if process finished, None otherwise.
        """
        if self.process:
            return self.process.poll()
        return None

def stop_runners(runners: List[ProcessRunner], timeout: float = 5.0):
    """
    Stops several runners at once under one shared deadline.

    Every process tree is signalled before any is waited on; survivors are
    killed once *timeout* seconds have passed in total.

    Args:
        runners (List[ProcessRunner]): Runners to stop; finished ones are skipped.
        timeout (float): Seconds to wait for termination before killing.
    """
    deadline = time.monotonic() + timeout
    children = []
    stopping = []
    for runner in runners:
        if runner.is_running():
            children.extend(runner.terminate())
            stopping.append(runner)

    for runner in stopping:
        runner.wait_or_kill(max(0.0, deadline - time.monotonic()))

    _, alive = psutil.wait_procs(children, timeout=max(0.0, deadline - time.monotonic()))
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
