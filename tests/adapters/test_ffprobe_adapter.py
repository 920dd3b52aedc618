import json

import pytest

from mshelf_backend.adapters.tools.ffprobe import FFProbe, is_valid_probe, summarize_stream
from mshelf_backend.shared import ErrorCode


def _new_probe(available: bool = True) -> FFProbe:
    probe = FFProbe.__new__(FFProbe)
    probe.bin = "ffprobe"
    probe.timeout = 1.0
    probe._resolved_bin = "ffprobe" if available else None
    probe._available = available
    return probe


def _output(streams, fmt=None) -> str:
    return json.dumps({"streams": streams, "format": fmt or {}})


def test_parse_output_summarizes_first_video_stream() -> None:
    probe = _new_probe()
    stdout = _output(
        [
            {"codec_type": "audio", "duration": "99"},
            {"codec_type": "video", "width": 1920, "height": 1080, "duration": "12.5", "display_aspect_ratio": "16:9"},
        ]
    )
    out = probe._parse_ffprobe_output(stdout, "", 0, "clip.mp4")
    assert out.ok
    assert out.data == {"width": 1920, "height": 1080, "duration": 12.5, "aspectRatio": "16:9"}


def test_parse_output_falls_back_to_format_duration_and_computed_aspect() -> None:
    stream = {"codec_type": "video", "width": 640, "height": 480, "display_aspect_ratio": "0:1"}
    summary = summarize_stream(stream, {"duration": "3.25"})
    assert summary == {"width": 640, "height": 480, "duration": 3.25, "aspectRatio": "640:480"}


def test_parse_output_errors() -> None:
    probe = _new_probe()
    failed = probe._parse_ffprobe_output("", "Invalid data found", 1, "x.mp4")
    assert failed.code == ErrorCode.FFPROBE_ERROR
    assert failed.error == "Invalid data found"

    empty = probe._parse_ffprobe_output("  ", "", 0, "x.mp4")
    assert empty.code == ErrorCode.FFPROBE_ERROR

    no_video = probe._parse_ffprobe_output(_output([{"codec_type": "audio"}]), "", 0, "x.mp4")
    assert no_video.code == ErrorCode.PARSE_ERROR


def test_build_cmd_selects_first_video_stream() -> None:
    cmd = _new_probe()._build_ffprobe_cmd("clip.mp4")
    assert cmd[0] == "ffprobe"
    assert "v:0" in cmd
    assert cmd[-1] == "clip.mp4"


@pytest.mark.asyncio
async def test_probe_without_binary_reports_tool_missing(tmp_path) -> None:
    out = await _new_probe(available=False).probe(tmp_path / "clip.mp4")
    assert out.code == ErrorCode.TOOL_MISSING


def test_is_valid_probe() -> None:
    assert is_valid_probe({"width": 1, "height": 1, "duration": 0.5})
    assert not is_valid_probe({"width": 0, "height": 0, "duration": 0, "aspectRatio": ""})
    assert not is_valid_probe(None)
    assert not is_valid_probe({"width": "wide"})
