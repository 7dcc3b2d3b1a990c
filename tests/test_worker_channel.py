import threading
import time

import pytest

from conftest import split_fake_output
from cover_encoder.domain.exceptions import (
    ConversionCancelledException,
    EngineStartException,
    EngineTimeoutException,
    MissingOutputException,
)
from cover_encoder.domain.models import (
    ConversionRequest,
    InputFile,
    StreamMessage,
    StreamName,
)
from cover_encoder.services.worker_channel import (
    ExecutionContext,
    WorkerChannel,
    split_sink,
)

WEBM = b"\x1a\x45\xdf\xa3fake-webm-payload"


def copy_request(*extra_args, outputs=("/out.opus",)):
    return ConversionRequest(
        arguments=["-i", "/in.webm", "-c", "copy", *extra_args, "/out.opus"],
        input_files=[InputFile("/in.webm", WEBM)],
        output_files=outputs,
    )


class Recorder:
    def __init__(self):
        self.messages: list[StreamMessage] = []
        self.lock = threading.Lock()
        self.started = threading.Event()

    def __call__(self, message: StreamMessage):
        with self.lock:
            self.messages.append(message)
        if message.line == "fake engine started":
            self.started.set()

    def lines(self, stream: StreamName) -> list[str]:
        return [m.line for m in self.messages if m.stream is stream]


def test_copy_request_returns_output(channel):
    result = channel.run(copy_request())

    assert result.exit_code == 0
    assert result.succeeded
    body, tags = split_fake_output(result.output_files["/out.opus"])
    assert body == WEBM
    assert tags == {}


def test_metadata_arguments_reach_engine_unchanged(channel):
    result = channel.run(copy_request("-metadata", "title=/in.webm"))
    _, tags = split_fake_output(result.output_files["/out.opus"])
    # Only whole tokens equal to a declared path are rewritten.
    assert tags == {"title": "/in.webm"}


def test_streams_are_forwarded_in_order(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_STDOUT_LINES", "50")
    recorder = Recorder()
    channel.run(copy_request(), sink=recorder)

    assert recorder.lines(StreamName.STDOUT) == [f"line {n}" for n in range(50)]
    stderr = recorder.lines(StreamName.STDERR)
    assert stderr[0] == "fake engine started"
    # Carriage-return progress updates arrive as separate lines.
    assert "size=1kB time=00:00:01.00" in stderr
    assert "size=2kB time=00:00:02.00" in stderr


def test_split_sink_routes_by_stream(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_STDOUT_LINES", "2")
    out, err = [], []
    channel.run(copy_request(), sink=split_sink(out.append, err.append))
    assert out == ["line 0", "line 1"]
    assert "fake engine started" in err


def test_sink_errors_do_not_break_the_run(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_STDOUT_LINES", "3")

    def failing_sink(message):
        raise RuntimeError("sink failure")

    result = channel.run(copy_request(), sink=failing_sink)
    assert result.exit_code == 0


def test_non_zero_exit_is_returned_as_data(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_EXIT", "3")
    result = channel.run(copy_request())
    assert result.exit_code == 3
    assert not result.succeeded
    assert "/out.opus" in result.output_files


def test_missing_output_fails(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_NO_OUTPUT", "1")
    with pytest.raises(MissingOutputException) as excinfo:
        channel.run(copy_request())
    assert excinfo.value.path == "/out.opus"
    assert excinfo.value.exit_code == 0


def test_undeclared_output_never_written_fails(channel):
    request = copy_request(outputs=("/out.opus", "/cover.jpg"))
    with pytest.raises(MissingOutputException) as excinfo:
        channel.run(request)
    assert excinfo.value.path == "/cover.jpg"


def test_missing_engine_fails_to_start():
    channel = WorkerChannel(["cover-encoder-no-such-engine"])
    with pytest.raises(EngineStartException):
        channel.run(copy_request())


def test_job_success_tears_down_context(channel):
    job = channel.submit(copy_request())
    result = job.result(timeout=30)
    job.join(timeout=30)

    assert result.exit_code == 0
    assert job.done()
    assert job.context.closed
    assert not job.context.is_running
    assert not job.context.root.exists()
    assert job.cancel() is False


def test_job_failure_tears_down_context(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_NO_OUTPUT", "1")
    job = channel.submit(copy_request())
    with pytest.raises(MissingOutputException):
        job.result(timeout=30)
    assert job.context.closed
    assert not job.context.is_running
    assert not job.context.root.exists()


def test_cancel_running_job(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_SLEEP", "30")
    recorder = Recorder()
    job = channel.submit(copy_request(), sink=recorder)
    assert recorder.started.wait(timeout=30)

    started = time.monotonic()
    assert job.cancel() is True
    with pytest.raises(ConversionCancelledException):
        job.result(timeout=30)
    job.join(timeout=30)

    assert time.monotonic() - started < 20
    assert job.context.cancelled
    assert job.context.closed
    assert not job.context.is_running
    assert not job.context.root.exists()


def test_cancel_before_start_yields_no_result(channel):
    context = channel.new_context()
    context.cancel()
    with pytest.raises(ConversionCancelledException):
        context.open()


def test_timeout_tears_down_engine(channel, monkeypatch):
    monkeypatch.setenv("FAKE_ENGINE_SLEEP", "30")
    started = time.monotonic()
    job = channel.submit(copy_request(), timeout=0.5)
    with pytest.raises(EngineTimeoutException):
        job.result(timeout=30)
    assert time.monotonic() - started < 20
    job.join(timeout=30)
    assert job.context.closed
    assert not job.context.is_running


def test_concurrent_requests_are_isolated(channel):
    requests = [
        ConversionRequest(
            arguments=["-i", "/in.webm", "-metadata", f"title=job {n}", "/out.opus"],
            input_files=[InputFile("/in.webm", f"payload {n}".encode())],
            output_files=["/out.opus"],
        )
        for n in range(4)
    ]
    jobs = [channel.submit(r) for r in requests]
    results = [job.result(timeout=60) for job in jobs]

    roots = {job.context.root for job in jobs}
    assert len(roots) == 4
    for n, result in enumerate(results):
        body, tags = split_fake_output(result.output_files["/out.opus"])
        assert body == f"payload {n}".encode()
        assert tags == {"title": f"job {n}"}


def test_context_maps_virtual_paths(fake_engine_command):
    with ExecutionContext(fake_engine_command) as context:
        assert context.map_path("/in.webm") == context.root / "in.webm"
        assert context.map_path("/a/b.opus") == context.root / "a" / "b.opus"
        for bad in ("relative.webm", "/", "/../escape", "/a/../../b"):
            with pytest.raises(ValueError):
                context.map_path(bad)
    assert context.closed
    assert not context.root.exists()


def test_context_is_single_use(fake_engine_command):
    context = ExecutionContext(fake_engine_command)
    with context:
        pass
    with pytest.raises(RuntimeError):
        context.open()


def test_close_is_idempotent(fake_engine_command):
    context = ExecutionContext(fake_engine_command)
    context.open()
    context.close()
    context.close()
    assert context.closed


def test_start_requires_loaded_engine(fake_engine_command):
    with ExecutionContext(fake_engine_command) as context:
        with pytest.raises(EngineStartException):
            context.start(["-i", "/in.webm", "/out.opus"])
