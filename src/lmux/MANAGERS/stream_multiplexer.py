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
Fan-out of one log reader per service, merged output, and cleanup of
everything the readers started, locally and inside the container.
"""
import signal
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, List, Optional

import click

from ..MODELS.service import LogOptions, RetrievalStrategy, ServiceName, ServiceSelection
from ..MODELS.settings import LogsSettings
from ..PARSERS.version_parser import VersionParser
from ..READERS.container_reader import ContainerLogReader
from ..READERS.orchestrated_reader import OrchestratedLogReader
from ..RUNNERS.process_runner import ProcessRunner, stop_runners
from ..RUNNERS.remote_executor import RemoteCommandExecutor
from ..UTILS.console import debug
from .output_sink import OutputSink

_CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)

def _in_main_thread() -> bool:
    return threading.current_thread() is threading.main_thread()

def _restore(sig, handler):
    signal.signal(sig, handler if handler is not None else signal.SIG_DFL)

@contextmanager
def _terminate_as_interrupt():
    """
    Turns SIGTERM into KeyboardInterrupt so both end a run the same way.
    """
    if not _in_main_thread():
        yield
        return

    def _interrupt(signum, frame):
        raise KeyboardInterrupt

    previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        yield
    finally:
        _restore(signal.SIGTERM, previous)

@contextmanager
def _signals_ignored():
    """
    Holds off SIGINT and SIGTERM so a repeated Ctrl+C cannot cut cleanup short.
    """
    if not _in_main_thread():
        yield
        return

    previous = {sig: signal.signal(sig, signal.SIG_IGN) for sig in _CANCEL_SIGNALS}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            _restore(sig, handler)

@dataclass
class ReaderHandle:
    """
    One in-flight log retrieval.
    """
    service: ServiceName
    runner: ProcessRunner

    @property
    def strategy(self) -> RetrievalStrategy:
        return self.service.retrieval_strategy

class StreamMultiplexer:
    """
    Runs one reader per selected service concurrently and merges their output.

    Use it as a context manager, or call ``run``: leaving the scope always
    runs ``cleanup``, whatever ended it.
    """
    def __init__(self,
                 selection: ServiceSelection,
                 options: LogOptions,
                 settings: LogsSettings,
                 stream: Optional[BinaryIO] = None,
                 major_version: Optional[int] = None,
                 poll_interval: float = 0.1):
        """
        Initializes the multiplexer.

        :param selection: Services to read, in dispatch order.
        :param options: Follow and tail options shared by all readers.
        :param settings: External commands, paths, and buffer sizes.
        :param stream: Binary stream for the merged output. Defaults to stdout.
        :param major_version: Image major version. Detected from settings when None.
        :param poll_interval: Seconds between checks for cancellation while waiting.
        """
        self.selection = selection
        self.options = options
        self.settings = settings
        self.poll_interval = poll_interval

        if stream is None:
            stream = click.get_binary_stream("stdout")
        self.sink = OutputSink(stream, max_lines=settings.output_buffer_lines)

        if major_version is None:
            major_version = VersionParser.detect_major(settings)

        single = selection.is_single
        self.executor = RemoteCommandExecutor(settings)
        self.orchestrated_reader = OrchestratedLogReader(settings, options, single)
        self.container_reader = ContainerLogReader(
            self.executor,
            settings,
            options,
            single,
            base_path=settings.base_path_for(major_version),
            registry_path=settings.registry_path(),
        )

        self.handles: List[ReaderHandle] = []
        self._cleanup_lock = threading.RLock()
        self._cleaned_up = False

    def __enter__(self):
        self.sink.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.cleanup()
        return False

    def dispatch(self):
        """
        Starts a reader for every selected service without waiting on any of them.
        """
        for service in self.selection.services:
            if service.retrieval_strategy == RetrievalStrategy.ORCHESTRATED:
                runner = self.orchestrated_reader.start(service, self.sink)
            else:
                runner = self.container_reader.start(service, self.sink)
            self.handles.append(ReaderHandle(service, runner))
        debug("lmux", f"Reading logs for: {', '.join(s.value for s in self.selection.services)}")

    def wait(self, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Waits until every reader reaches the end of its stream.

        :param stop_event: Ends the wait early when set.
        :return: True if all readers finished, False if the wait was stopped.
        """
        for handle in self.handles:
            while not handle.runner.join(self.poll_interval):
                if stop_event is not None and stop_event.is_set():
                    return False
        return True

    def run(self, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Dispatches all readers and waits for them, then cleans up.

        In follow mode the readers never end on their own, so the run lasts
        until Ctrl+C, SIGTERM, or *stop_event*.

        :param stop_event: Cancels the run when set.
        :return: True if every reader finished, False if the run was cancelled.
        """
        with _terminate_as_interrupt(), self:
            self.dispatch()
            try:
                return self.wait(stop_event)
            except KeyboardInterrupt:
                debug("lmux", "Interrupted, stopping readers...")
                return False

    def failed_handles(self) -> List[ReaderHandle]:
        """
        Readers whose command could not be started.
        """
        return [h for h in self.handles if h.runner.error is not None]

    def _join_all(self, handles: List[ReaderHandle], timeout: float):
        deadline = time.monotonic() + timeout
        for handle in handles:
            handle.runner.join(max(0.0, deadline - time.monotonic()))

    def cleanup(self):
        """
        Stops every reader and the remote tails they registered. Runs once; later calls do nothing.

        Stopping a local exec process does not stop the tail it started inside
        the container, so the remote registry sweep is always needed as well.
        Each waiting step shares one ``stop_timeout`` across all readers.
        """
        with self._cleanup_lock, _signals_ignored():
            if self._cleaned_up:
                return
            self._cleaned_up = True

            timeout = self.settings.stop_timeout
            orchestrated = [h for h in self.handles if h.strategy == RetrievalStrategy.ORCHESTRATED]
            in_container = [h for h in self.handles if h.strategy == RetrievalStrategy.IN_CONTAINER]

            # 1. Local orchestrator log commands
            stop_runners([h.runner for h in orchestrated], timeout)

            # 2. Remote tails, through the PID registry
            if in_container:
                result = self.container_reader.sweep()
                if result.ok:
                    debug("lmux", "Remote tails stopped")
                    # 3. Local exec processes end once their remote tail is gone
                    self._join_all(in_container, timeout)
                else:
                    debug("lmux", f"Remote sweep failed: {result.error}")
                stop_runners([h.runner for h in in_container], timeout)

            self._join_all(self.handles, timeout)
            self.sink.close(timeout)

            for handle in self.failed_handles():
                debug(handle.service.value, f"No logs: {handle.runner.error}")
