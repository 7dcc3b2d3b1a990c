import dataclasses
from datetime import timedelta

import ffmpeg
import pytest

from cover_encoder.domain.exceptions import EngineStartException, MediaProbeException
from cover_encoder.domain.models import ConversionRequest, ConversionResult, InputFile
from cover_encoder.utils import ffmpeg_utils
from cover_encoder.utils.format_utils import format_timedelta, formatted_size


def test_request_is_immutable_and_normalized():
    request = ConversionRequest(
        arguments=["-i", "/in.webm", "/out.opus"],
        input_files=[InputFile("/in.webm", b"x")],
        output_files=["/out.opus"],
    )
    assert isinstance(request.arguments, tuple)
    assert isinstance(request.output_files, tuple)
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.arguments = ()


def test_result_outputs_are_read_only():
    outputs = {"/out.opus": b"data"}
    result = ConversionResult(exit_code=0, output_files=outputs)
    outputs["/other"] = b""
    assert dict(result.output_files) == {"/out.opus": b"data"}
    with pytest.raises(TypeError):
        result.output_files["/x"] = b""


def test_display_command_shortens_long_tokens():
    tag = "METADATA_BLOCK_PICTURE=" + "A" * 1000
    display = ffmpeg_utils.display_command(["ffmpeg", "-metadata", tag, "/out file.opus"])
    assert display.startswith("ffmpeg -metadata ")
    assert "(+" in display
    assert len(display) < 300
    assert "'/out file.opus'" in display


def test_resolve_engine_command_missing():
    with pytest.raises(EngineStartException):
        ffmpeg_utils.resolve_engine_command(["cover-encoder-no-such-engine"])
    with pytest.raises(EngineStartException):
        ffmpeg_utils.resolve_engine_command([])


def test_resolve_engine_command_keeps_extra_args(fake_engine_command):
    resolved = ffmpeg_utils.resolve_engine_command(fake_engine_command)
    assert resolved[1:] == fake_engine_command[1:]


def test_probe_format_tags_merges_stream_tags(tmp_path, monkeypatch):
    media = tmp_path / "song.opus"
    media.write_bytes(b"ogg")
    probe_result = {
        "format": {"tags": {"encoder": "Lavf"}},
        "streams": [{"tags": {"ARTIST": "Artist", "encoder": "stream"}}],
    }
    monkeypatch.setattr(ffmpeg, "probe", lambda path, cmd="ffprobe": probe_result)

    assert ffmpeg_utils.probe_format_tags(media) == {"encoder": "Lavf", "ARTIST": "Artist"}


def test_probe_format_tags_failure(tmp_path, monkeypatch):
    media = tmp_path / "song.opus"
    media.write_bytes(b"junk")

    def failing_probe(path, cmd="ffprobe"):
        raise ffmpeg.Error(cmd, b"", b"Invalid data found when processing input")

    monkeypatch.setattr(ffmpeg, "probe", failing_probe)
    with pytest.raises(MediaProbeException, match="Invalid data"):
        ffmpeg_utils.probe_format_tags(media)


def test_probe_missing_file(tmp_path):
    with pytest.raises(MediaProbeException):
        ffmpeg_utils.probe_format_tags(tmp_path / "missing.opus")


def test_formatting_helpers():
    assert formatted_size(0) == "0 B"
    assert formatted_size(512) == "512 B"
    assert formatted_size(1536) == "1.50 KB"
    assert formatted_size(2 * 1024 * 1024) == "2 MB"
    assert format_timedelta(timedelta(hours=1, minutes=2, seconds=3, milliseconds=45)) == "01:02:03.045"
    assert format_timedelta(None) == "00:00:00.000"
