"""
FFmpeg Command Builder for looped RTMP relays.

This module builds the argument vectors for the relay subprocess: a source
video read at native rate, looped forever, and pushed as FLV to an RTMP
ingest endpoint. Two modes are supported, stream copy (passthrough, lowest
CPU) and re-encode to a fixed quality profile.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..shared.types import RelayMode


@dataclass(frozen=True)
class QualityProfile:
    """Resolution and bitrates used by re-encode mode."""

    resolution: str
    video_bitrate: str
    audio_bitrate: str


QUALITY_PROFILES: dict[str, QualityProfile] = {
    "720p": QualityProfile("1280x720", "2500k", "128k"),
    "1080p": QualityProfile("1920x1080", "4500k", "192k"),
    "4K": QualityProfile("3840x2160", "15000k", "320k"),
}

DEFAULT_QUALITY = "1080p"


def get_quality_profile(quality: str | None) -> QualityProfile:
    """Return the profile for ``quality``; unknown tags fall back to 1080p."""
    return QUALITY_PROFILES.get(quality or DEFAULT_QUALITY, QUALITY_PROFILES[DEFAULT_QUALITY])


def build_relay_cmd(
    video_path: str | Path,
    ingest_url: str,
    mode: RelayMode = RelayMode.COPY,
    quality: str | None = None,
    ffmpeg_binary: str = "ffmpeg",
    video_preset: str = "veryfast",
    gop: int = 60,
    audio_rate: int = 44100,
) -> list[str]:
    """
    Build the FFmpeg command for a 24/7 looped relay.

    Args:
        video_path: Source video file
        ingest_url: Full RTMP destination (endpoint + stream key)
        mode: ``RelayMode.COPY`` for passthrough or ``RelayMode.REENCODE``
        quality: Quality tag selecting the re-encode profile (ignored in copy mode)
        ffmpeg_binary: Executable to run
        video_preset: x264 preset for re-encoding
        gop: Keyframe interval for re-encoding
        audio_rate: Audio sample rate in Hz for re-encoding

    Returns:
        List of FFmpeg command arguments

    Example:
        >>> cmd = build_relay_cmd("/videos/loop.mp4", "rtmp://host/live2/key")
        >>> # Returns: ["ffmpeg", "-nostdin", "-hide_banner", "-re", ...]
    """
    cmd = [ffmpeg_binary]

    # Global flags
    cmd.extend(["-nostdin", "-hide_banner", "-loglevel", "warning"])

    # Looped input at native frame rate
    cmd.extend(["-re", "-stream_loop", "-1", "-i", str(video_path)])

    if mode == RelayMode.REENCODE:
        profile = get_quality_profile(quality)
        cmd.extend(
            [
                "-c:v",
                "libx264",
                "-preset",
                video_preset,
                "-b:v",
                profile.video_bitrate,
                "-maxrate",
                profile.video_bitrate,
                "-bufsize",
                profile.video_bitrate,
                "-vf",
                f"scale={profile.resolution}",
                "-g",
                str(gop),
                "-c:a",
                "aac",
                "-b:a",
                profile.audio_bitrate,
                "-ar",
                str(audio_rate),
            ]
        )
    else:
        cmd.extend(["-c", "copy"])

    # FLV muxing to the ingest endpoint
    cmd.extend(["-f", "flv", ingest_url])

    return cmd


def get_cmd_summary(cmd: list[str]) -> str:
    """
    Get a human-readable summary of a relay command.

    The destination is left out so stream keys never reach the log.
    """
    if not cmd:
        return "Invalid FFmpeg command"

    input_file = None
    video_codec = "unknown"

    for i, arg in enumerate(cmd):
        if arg == "-i" and i + 1 < len(cmd):
            input_file = cmd[i + 1]
        elif arg in ("-c:v", "-c") and i + 1 < len(cmd):
            video_codec = cmd[i + 1]

    mode = RelayMode.COPY.value if video_codec == "copy" else RelayMode.REENCODE.value
    return f"FFmpeg {mode} relay: {video_codec} video, input: {input_file}"
