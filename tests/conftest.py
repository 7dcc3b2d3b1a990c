import sys
from pathlib import Path

import pytest

from cover_encoder.services.worker_channel import WorkerChannel

FAKE_ENGINE = Path(__file__).parent / "fake_engine.py"
TAGS_MARKER = b"\n--tags--\n"

FAKE_ENGINE_ENV_VARS = (
    "FAKE_ENGINE_EXIT",
    "FAKE_ENGINE_NO_OUTPUT",
    "FAKE_ENGINE_SLEEP",
    "FAKE_ENGINE_STDOUT_LINES",
)


def make_jpeg(
    width: int = 480,
    height: int = 360,
    components: int = 3,
    precision: int = 8,
    sof_marker: int = 0xC0,
    fill_bytes: int = 0,
    extra_segments: bytes = b"",
) -> bytes:
    """Builds a minimal JPEG byte stream up to and past its frame header."""
    app0_payload = b"JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    app0 = b"\xff\xe0" + (len(app0_payload) + 2).to_bytes(2, "big") + app0_payload
    dqt_payload = b"\x00" + bytes(range(64))
    dqt = b"\xff\xdb" + (len(dqt_payload) + 2).to_bytes(2, "big") + dqt_payload

    sof_payload = (
        bytes([precision])
        + height.to_bytes(2, "big")
        + width.to_bytes(2, "big")
        + bytes([components])
        + b"".join(bytes([i + 1, 0x11, 0x00]) for i in range(components))
    )
    sof = (
        b"\xff" * fill_bytes
        + bytes([0xFF, sof_marker])
        + (len(sof_payload) + 2).to_bytes(2, "big")
        + sof_payload
    )
    # Scan header and a few bytes of entropy-coded data; never read by the decoder.
    tail = b"\xff\xda\x00\x08\x01\x01\x00\x00\x3f\x00" + b"\x12\x34\x56" + b"\xff\xd9"
    return b"\xff\xd8" + app0 + dqt + extra_segments + sof + tail


def split_fake_output(data: bytes) -> tuple[bytes, dict[str, str]]:
    """Splits fake engine output into the copied input and its tags."""
    body, _, tag_section = data.partition(TAGS_MARKER)
    tags = {}
    for line in tag_section.decode("utf-8").splitlines():
        key, _, value = line.partition("=")
        tags[key] = value
    return body, tags


@pytest.fixture(autouse=True)
def clean_fake_engine_env(monkeypatch):
    for name in FAKE_ENGINE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_engine_command() -> list[str]:
    return [sys.executable, str(FAKE_ENGINE)]


@pytest.fixture
def channel(fake_engine_command) -> WorkerChannel:
    return WorkerChannel(fake_engine_command, grace_seconds=2.0)


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()
