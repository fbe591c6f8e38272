from __future__ import annotations

import pytest

from loopcast.shared.types import RelayMode
from loopcast.streaming.ffmpeg_cmd import (
    QUALITY_PROFILES,
    build_relay_cmd,
    get_cmd_summary,
    get_quality_profile,
)

URL = "rtmp://a.rtmp.youtube.com/live2/secret-key"


def _value(cmd, flag):
    return cmd[cmd.index(flag) + 1]


def test_copy_mode_loops_input_and_copies_streams():
    cmd = build_relay_cmd("/videos/loop.mp4", URL)

    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-re") : cmd.index("-i") + 2] == [
        "-re",
        "-stream_loop",
        "-1",
        "-i",
        "/videos/loop.mp4",
    ]
    assert _value(cmd, "-c") == "copy"
    assert "libx264" not in cmd
    assert cmd[-3:] == ["-f", "flv", URL]


@pytest.mark.parametrize(
    "quality, resolution, vbit, abit",
    [
        ("720p", "1280x720", "2500k", "128k"),
        ("1080p", "1920x1080", "4500k", "192k"),
        ("4K", "3840x2160", "15000k", "320k"),
    ],
)
def test_reencode_uses_quality_profile(quality, resolution, vbit, abit):
    cmd = build_relay_cmd("in.mp4", URL, mode=RelayMode.REENCODE, quality=quality)

    assert _value(cmd, "-c:v") == "libx264"
    assert _value(cmd, "-preset") == "veryfast"
    assert _value(cmd, "-b:v") == vbit
    assert _value(cmd, "-maxrate") == vbit
    assert _value(cmd, "-bufsize") == vbit
    assert _value(cmd, "-vf") == f"scale={resolution}"
    assert _value(cmd, "-g") == "60"
    assert _value(cmd, "-c:a") == "aac"
    assert _value(cmd, "-b:a") == abit
    assert _value(cmd, "-ar") == "44100"
    assert "-c" not in cmd


def test_unknown_quality_falls_back_to_1080p():
    assert get_quality_profile("8K") == QUALITY_PROFILES["1080p"]
    assert get_quality_profile(None) == QUALITY_PROFILES["1080p"]


def test_custom_binary():
    assert build_relay_cmd("in.mp4", URL, ffmpeg_binary="/opt/ffmpeg/bin/ffmpeg")[0] == "/opt/ffmpeg/bin/ffmpeg"


def test_summary_omits_destination():
    summary = get_cmd_summary(build_relay_cmd("in.mp4", URL, mode=RelayMode.REENCODE))

    assert "reencode" in summary
    assert "libx264" in summary
    assert "secret-key" not in summary
    assert get_cmd_summary([]) == "Invalid FFmpeg command"
