from __future__ import annotations

import time

import typer

from ...infra.exceptions import LoopcastError, NotRunning
from ...shared.schemas import DEFAULT_RTMP_URL, StreamCreate, StreamUpdate
from ...usecases import stream_control as _uc_stream
from ..context import get_station
from ._output import emit_json, fail

app = typer.Typer(name="stream", help="Stream configuration and relay operations")


@app.command("list")
def list_streams(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """List configured streams."""
    try:
        streams = _uc_stream.list_streams(get_station())
    except LoopcastError as e:
        fail(e, json_output, "listing streams")

    if json_output:
        emit_json({"status": "ok", "total": len(streams), "streams": streams})
        return
    if not streams:
        typer.echo("No streams found")
        return
    typer.echo("Streams:")
    for s in streams:
        mode = "reencode" if s["reencode"] else "copy"
        typer.echo(f"  [{s['id']}] {s['title']} ({s['platform']}, {s['quality']}, {mode}) - {s['status']}")
        typer.echo(f"      Video: {s['video_file']}")
    typer.echo(f"\nTotal: {len(streams)} streams")


@app.command("show")
def show_stream(
    stream_id: int = typer.Argument(..., help="Stream id"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Show one stream's configuration."""
    try:
        stream = _uc_stream.get_stream(get_station(), stream_id)
    except LoopcastError as e:
        fail(e, json_output, "showing stream")

    if json_output:
        emit_json({"status": "ok", "stream": stream})
        return
    for key in ("id", "title", "platform", "rtmp_url", "stream_key", "video_file", "quality"):
        typer.echo(f"{key.replace('_', ' ').title()}: {stream[key]}")
    typer.echo(f"Duration: {stream['duration_hours'] or 'unbounded'} h")
    typer.echo(f"Re-encode: {stream['reencode']}")
    typer.echo(f"Status: {stream['status']}")


@app.command("add")
def add_stream(
    title: str = typer.Option(..., "--title", help="Stream title"),
    stream_key: str = typer.Option(..., "--key", help="Secret stream key"),
    video_file: str = typer.Option(..., "--video", help="Source video, relative to VIDEOS_DIR"),
    rtmp_url: str = typer.Option(DEFAULT_RTMP_URL, "--rtmp-url", help="RTMP ingest endpoint"),
    platform: str = typer.Option("youtube", "--platform", help="Platform tag"),
    quality: str = typer.Option("1080p", "--quality", help="Quality tag: 720p, 1080p or 4K"),
    duration_hours: float = typer.Option(0.0, "--duration", help="Auto-stop after N hours (0 = never)"),
    reencode: bool = typer.Option(False, "--reencode/--copy", help="Relay mode"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Create a stream.

    Examples:
        loopcast stream add --title "Lofi 24/7" --key abcd-1234 --video lofi.mp4
        loopcast stream add --title "Rain" --key k --video rain.mp4 --reencode --quality 720p
    """
    try:
        data = StreamCreate(
            title=title,
            stream_key=stream_key,
            video_file=video_file,
            rtmp_url=rtmp_url,
            platform=platform,
            quality=quality,
            duration_hours=duration_hours,
            reencode=reencode,
        )
        stream = _uc_stream.create_stream(get_station(), data)
    except (LoopcastError, ValueError) as e:
        fail(e, json_output, "creating stream")

    if json_output:
        emit_json({"status": "ok", "stream": stream})
    else:
        typer.echo(f"Stream created: [{stream['id']}] {stream['title']}")


@app.command("update")
def update_stream(
    stream_id: int = typer.Argument(..., help="Stream id"),
    title: str | None = typer.Option(None, "--title"),
    stream_key: str | None = typer.Option(None, "--key"),
    video_file: str | None = typer.Option(None, "--video"),
    rtmp_url: str | None = typer.Option(None, "--rtmp-url"),
    quality: str | None = typer.Option(None, "--quality"),
    duration_hours: float | None = typer.Option(None, "--duration"),
    reencode: bool | None = typer.Option(None, "--reencode/--copy"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Update a stream that is not running."""
    given = {
        "title": title,
        "stream_key": stream_key,
        "video_file": video_file,
        "rtmp_url": rtmp_url,
        "quality": quality,
        "duration_hours": duration_hours,
        "reencode": reencode,
    }
    try:
        changes = StreamUpdate(**{k: v for k, v in given.items() if v is not None})
        stream = _uc_stream.update_stream(get_station(), stream_id, changes)
    except (LoopcastError, ValueError) as e:
        fail(e, json_output, "updating stream")

    if json_output:
        emit_json({"status": "ok", "stream": stream})
    else:
        typer.echo(f"Stream updated: [{stream['id']}] {stream['title']}")


@app.command("delete")
def delete_stream(
    stream_id: int = typer.Argument(..., help="Stream id"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Delete a stream that is not running and no schedule references."""
    try:
        _uc_stream.delete_stream(get_station(), stream_id)
    except LoopcastError as e:
        fail(e, json_output, "deleting stream")

    if json_output:
        emit_json({"status": "ok", "deleted": stream_id})
    else:
        typer.echo(f"Stream {stream_id} deleted")


@app.command("run")
def run_stream(
    stream_id: int = typer.Argument(..., help="Stream id"),
    reencode: bool | None = typer.Option(None, "--reencode/--copy", help="Override relay mode"),
    poll_interval: float = typer.Option(1.0, "--poll", help="Seconds between liveness checks"),
):
    """Relay one stream in the foreground until it ends or Ctrl+C.

    Crash restarts and the duration limit apply as they do under `serve`.
    """
    station = get_station()
    try:
        status = _uc_stream.start_stream(station, stream_id, reencode=reencode)
    except LoopcastError as e:
        fail(e, False, "starting stream")

    typer.echo(f"Stream {stream_id} live ({status.mode.value if status.mode else 'copy'} mode)")
    typer.echo("Press Ctrl+C to stop...")
    try:
        while _uc_stream.is_running(station, stream_id):
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        typer.echo("\nShutting down...")
        try:
            _uc_stream.stop_stream(station, stream_id)
        except NotRunning:
            pass  # ended while we were interrupted

    final = _uc_stream.get_status(station, stream_id)
    typer.echo(f"Stream {stream_id} ended: {final.state.value}")
    if final.last_error:
        typer.echo(final.last_error, err=True)
        raise typer.Exit(1)
