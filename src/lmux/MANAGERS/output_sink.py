"""
Merged output of all readers, written by a single thread.
"""
import queue
import threading
from typing import BinaryIO, Optional

from ..UTILS.console import debug

_CLOSE = object()

class OutputSink:
    """
    Bounded line buffer in front of a binary stream.

    Producers block while the buffer is full, so nothing is dropped and a slow
    consumer pushes back on the readers. Lines are written whole, one at a
    time, so lines from different services never interleave mid-line.
    """
    def __init__(self, stream: BinaryIO, max_lines: int = 1024, poll_interval: float = 0.1):
        """
        :param stream: Binary stream receiving the merged output.
        :param max_lines: Lines buffered before producers block.
        :param poll_interval: Seconds between checks for a closed sink while blocked.
        """
        self.stream = stream
        self.poll_interval = poll_interval
        self._queue: "queue.Queue" = queue.Queue(maxsize=max_lines)
        self._closed = threading.Event()
        self._writer: Optional[threading.Thread] = None

    def start(self):
        """
        Starts the writer thread.
        """
        if self._writer is None:
            self._writer = threading.Thread(target=self._write_loop, name="lmux-output", daemon=True)
            self._writer.start()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, line: bytes) -> bool:
        """
        Queues a line, blocking while the buffer is full.

        :param line: One output line, newline included.
        :return: False once the sink is closed and the line was discarded.
        """
        while not self._closed.is_set():
            try:
                self._queue.put(line, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _write_loop(self):
        while True:
            item = self._queue.get()
            if item is _CLOSE:
                break
            try:
                self.stream.write(item)
                if self._queue.empty():
                    self.stream.flush()
            except (OSError, ValueError) as e:
                # Reader of our output went away; stop accepting lines.
                debug("output", f"Output closed: {e}")
                self._closed.set()
                break

    def close(self, timeout: Optional[float] = None):
        """
        Stops accepting lines, writes what is buffered, and stops the writer.
        Calling it again is a no-op.
        """
        if self._closed.is_set() and (self._writer is None or not self._writer.is_alive()):
            return
        self._closed.set()
        if self._writer is None:
            return

        while self._writer.is_alive():
            try:
                self._queue.put(_CLOSE, timeout=self.poll_interval)
                break
            except queue.Full:
                continue
        self._writer.join(timeout)
        try:
            self.stream.flush()
        except (OSError, ValueError):
            pass
