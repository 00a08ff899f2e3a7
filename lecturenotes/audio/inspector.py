"""
Media inspection and validation using ffprobe.

Probing gives the duration, size and container format of an uploaded
recording. Validation is a fail-fast gate run before any expensive work:
recordings that are too large or too long are rejected up front.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import ffmpeg

from ..errors import DurationTooLong, FileTooLarge, ProbeError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 500 * 1024 * 1024  # 500MB
MAX_DURATION_SECONDS = 2.5 * 60 * 60  # 2.5 hours


@dataclass
class MediaInfo:
    """Basic facts about a media file."""

    duration: float  # seconds
    size: int  # bytes
    format_name: str


class MediaInspector:
    """Probes and validates media files."""

    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        max_file_size: int = MAX_FILE_SIZE,
        max_duration: float = MAX_DURATION_SECONDS,
    ):
        """
        Initialize the inspector.

        Args:
            ffprobe_path: ffprobe executable to run
            max_file_size: Largest accepted file, in bytes
            max_duration: Longest accepted recording, in seconds
        """
        self.ffprobe_path = ffprobe_path
        self.max_file_size = max_file_size
        self.max_duration = max_duration

    def probe(self, path: str) -> MediaInfo:
        """
        Probe a media file.

        Args:
            path: Path to the media file

        Returns:
            MediaInfo with duration, size and container format

        Raises:
            ProbeError: If the file is missing or not a decodable container
        """
        if not os.path.isfile(path):
            raise ProbeError(f"Media file not found: {path}")

        try:
            metadata = ffmpeg.probe(path, cmd=self.ffprobe_path)
        except ffmpeg.Error as e:
            details = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else str(e)
            logger.error(f"ffprobe failed for {path}: {details}")
            raise ProbeError(f"Failed to probe audio file: {details}") from e
        except OSError as e:
            raise ProbeError(f"Failed to run ffprobe: {e}") from e

        fmt = metadata.get("format") or {}
        try:
            duration = float(fmt.get("duration") or 0)
            size = int(fmt.get("size") or os.path.getsize(path))
        except (TypeError, ValueError) as e:
            raise ProbeError(f"Unreadable media metadata for {path}: {e}") from e

        info = MediaInfo(duration=duration, size=size, format_name=fmt.get("format_name") or "unknown")
        logger.debug(f"Probed {path}: {info}")
        return info

    def validate(self, path: str, info: Optional[MediaInfo] = None) -> MediaInfo:
        """
        Reject files that exceed the size or duration ceilings.

        Args:
            path: Path to the media file
            info: Result of a previous ``probe`` call, to avoid probing twice

        Returns:
            The MediaInfo used for validation

        Raises:
            FileTooLarge: If the file is larger than ``max_file_size``
            DurationTooLong: If the recording is longer than ``max_duration``
            ProbeError: If the file cannot be probed
        """
        try:
            size = os.path.getsize(path)
        except OSError as e:
            raise ProbeError(f"Cannot read media file {path}: {e}") from e

        if size > self.max_file_size:
            raise FileTooLarge(
                f"File too large: {size / 1024 / 1024:.2f}MB (max: {self.max_file_size / 1024 / 1024:.0f}MB)"
            )

        if info is None:
            info = self.probe(path)

        if info.duration > self.max_duration:
            raise DurationTooLong(
                f"Audio too long: {info.duration / 3600:.1f} hours (max: {self.max_duration / 3600:.1f} hours)"
            )

        return info
