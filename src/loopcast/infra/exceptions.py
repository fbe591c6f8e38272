"""
Custom exceptions for Loopcast operations.

This module provides custom exception classes for the failures that the
orchestrator, the config store and the use cases surface to their callers.
"""


class LoopcastError(Exception):
    """Base exception for all Loopcast errors."""

    pass


class ValidationError(LoopcastError):
    """Raised when a configuration payload is invalid."""

    pass


class NotFound(LoopcastError):
    """Raised when a referenced record or file does not exist."""

    pass


class StreamNotFound(NotFound):
    """Raised for an unknown stream id."""

    def __init__(self, stream_id: int):
        super().__init__(f"Stream {stream_id} not found")
        self.stream_id = stream_id


class ScheduleNotFound(NotFound):
    """Raised for an unknown schedule id."""

    def __init__(self, schedule_id: int):
        super().__init__(f"Schedule {schedule_id} not found")
        self.schedule_id = schedule_id


class SourceVideoMissing(NotFound):
    """Raised when the source video of a stream is not on disk."""

    def __init__(self, video_file: str):
        super().__init__(f"Video file not found: {video_file}")
        self.video_file = video_file


class AlreadyRunning(LoopcastError):
    """Raised when starting a stream that already has a relay process."""

    def __init__(self, stream_id: int):
        super().__init__(f"Stream {stream_id} is already running")
        self.stream_id = stream_id


class NotRunning(LoopcastError):
    """Raised when stopping a stream that has no relay process."""

    def __init__(self, stream_id: int):
        super().__init__(f"Stream {stream_id} is not running")
        self.stream_id = stream_id


class SpawnFailed(LoopcastError):
    """Raised when the relay process does not survive the liveness probe."""

    def __init__(self, stream_id: int, detail: str):
        super().__init__(f"Relay for stream {stream_id} failed to start: {detail}")
        self.stream_id = stream_id
        self.detail = detail


class MaxRetriesExceeded(LoopcastError):
    """Terminal crash outcome; the stream needs a manual start."""

    def __init__(self, stream_id: int, retries: int):
        super().__init__(
            f"Stream {stream_id} crashed {retries} times in a row; auto-restart disabled"
        )
        self.stream_id = stream_id
        self.retries = retries


class ConfigLocked(LoopcastError):
    """Raised when mutating the config of a stream that is running."""

    def __init__(self, stream_id: int):
        super().__init__(
            f"Stream {stream_id} cannot be modified while streaming. Stop the stream first."
        )
        self.stream_id = stream_id
