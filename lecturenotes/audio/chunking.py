"""
Splitting long recordings into transcription-sized chunks.

Recordings longer than the chunk length, or larger than the transcription
upload threshold, are cut into fixed-duration segments re-encoded as
low-bitrate mono speech audio under the job's ``chunks`` directory.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List

import ffmpeg

from ..errors import SplitError
from .inspector import MediaInspector

logger = logging.getLogger(__name__)

CHUNK_DURATION_SECONDS = 20 * 60  # 20 minutes per chunk
CHUNK_SIZE_THRESHOLD = 20 * 1024 * 1024  # 20MB

# Speech-only encoding: Opus in WebM, 64 kbps, mono, 16 kHz
CHUNK_EXTENSION = "webm"
CHUNK_CODEC = "libopus"
CHUNK_BITRATE = "64k"
CHUNK_SAMPLE_RATE = 16000
CHUNK_CHANNELS = 1


@dataclass
class AudioChunk:
    """A bounded-duration slice of a source recording."""

    path: Path
    index: int
    start_time: float  # seconds
    duration: float  # seconds


class ChunkSplitter:
    """Decides whether a recording needs chunking and produces the chunks."""

    def __init__(
        self,
        job_store,
        inspector: MediaInspector,
        ffmpeg_path: str = "ffmpeg",
        chunk_duration: float = CHUNK_DURATION_SECONDS,
        size_threshold: int = CHUNK_SIZE_THRESHOLD,
    ):
        """
        Initialize the splitter.

        Args:
            job_store: JobStore that owns the per-job chunk directories
            inspector: MediaInspector used to probe recordings
            ffmpeg_path: ffmpeg executable to run
            chunk_duration: Nominal chunk length in seconds
            size_threshold: File size in bytes above which chunking is forced
        """
        self.job_store = job_store
        self.inspector = inspector
        self.ffmpeg_path = ffmpeg_path
        self.chunk_duration = chunk_duration
        self.size_threshold = size_threshold

    def needs_chunking(self, path: str) -> bool:
        """True if the recording is longer than one chunk or larger than the size threshold."""
        info = self.inspector.probe(path)
        return info.duration > self.chunk_duration or info.size > self.size_threshold

    def split(self, job_id: str, path: str) -> List[AudioChunk]:
        """
        Cut a recording into consecutive chunks.

        Args:
            job_id: Job the chunks belong to
            path: Path to the source recording

        Returns:
            Chunks in index order

        Raises:
            SplitError: If any chunk cannot be encoded. Chunks already written
                are left in place for ``cleanup``.
        """
        info = self.inspector.probe(path)
        chunks_dir = self.job_store.get_chunks_dir(job_id)
        chunks_dir.mkdir(parents=True, exist_ok=True)

        num_chunks = math.ceil(info.duration / self.chunk_duration)
        logger.info(
            f"Splitting {path} ({info.duration:.1f}s) into {num_chunks} chunks "
            f"of {self.chunk_duration / 60:.0f} minutes for job {job_id}"
        )

        chunks = []
        for index in range(num_chunks):
            start_time = index * self.chunk_duration
            chunk_path = chunks_dir / f"chunk-{index:03d}.{CHUNK_EXTENSION}"

            self._encode_chunk(path, chunk_path, start_time)

            duration = min(self.chunk_duration, info.duration - start_time)
            chunks.append(AudioChunk(path=chunk_path, index=index, start_time=start_time, duration=duration))
            logger.info(f"Created chunk {index + 1}/{num_chunks}: {duration:.1f}s")

        return chunks

    def cleanup(self, job_id: str) -> None:
        """Remove all chunk files for a job. Failures are logged, never raised."""
        try:
            chunks_dir = self.job_store.get_chunks_dir(job_id)
            if not chunks_dir.exists():
                return

            removed = 0
            for chunk_file in chunks_dir.iterdir():
                try:
                    chunk_file.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning(f"Failed to remove chunk {chunk_file}: {e}")

            logger.info(f"Cleaned up {removed} audio chunks for job {job_id}")
        except Exception as e:
            logger.warning(f"Failed to cleanup chunks for job {job_id}: {e}")

    def _encode_chunk(self, source: str, target: Path, start_time: float) -> None:
        """Encode one chunk; the final chunk is truncated by ffmpeg at end of input."""
        stream = (
            ffmpeg.input(source, ss=start_time, t=self.chunk_duration)
            .output(
                str(target),
                acodec=CHUNK_CODEC,
                audio_bitrate=CHUNK_BITRATE,
                ar=CHUNK_SAMPLE_RATE,
                ac=CHUNK_CHANNELS,
                vn=None,
            )
            .global_args("-hide_banner", "-loglevel", "error")
        )

        try:
            ffmpeg.run(
                stream,
                cmd=self.ffmpeg_path,
                overwrite_output=True,
                capture_stdout=True,
                capture_stderr=True,
            )
        except ffmpeg.Error as e:
            details = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else str(e)
            logger.error(f"FFmpeg error creating {target}: {details}")
            raise SplitError(f"FFmpeg error: {details}") from e
        except OSError as e:
            raise SplitError(f"Failed to run ffmpeg: {e}") from e
