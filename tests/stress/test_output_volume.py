import io
import time
from lmux.MANAGERS.stream_multiplexer import StreamMultiplexer
from lmux.MODELS.service import LogOptions, ServiceSelection

SERVICES = ["chat", "web", "docstore", "filestore", "tags"]
LINES = 5000

def test_high_volume_is_not_garbled(settings, log_dir):
    """
    Streams 25000 lines from five services through a small buffer.
    Every line must arrive whole, and each service keeps its own order.
    """
    for name in SERVICES:
        (log_dir / f"{name}.log").write_text("".join(f"{name} entry {i:05d}\n" for i in range(LINES)))

    small_buffer = settings.model_copy(update={"output_buffer_lines": 16})
    stream = io.BytesIO()
    mux = StreamMultiplexer(
        ServiceSelection.from_names(SERVICES),
        LogOptions(tail_lines="all"),
        small_buffer,
        stream=stream,
    )

    start_time = time.time()
    assert mux.run()
    print(f"Multiplexed {len(SERVICES) * LINES} lines in {time.time() - start_time:.2f}s")

    lines = stream.getvalue().decode().splitlines()
    assert len(lines) == len(SERVICES) * LINES
    for name in SERVICES:
        prefix = f"{name:<13}| "
        own = [line[len(prefix):] for line in lines if line.startswith(prefix)]
        assert own == [f"{name} entry {i:05d}" for i in range(LINES)]
