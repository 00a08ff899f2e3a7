"""
Audio handling for lecture recordings.

Main components:
- MediaInspector: ffprobe-based probing and size/duration validation
- ChunkSplitter: cuts long recordings into 20-minute speech chunks
- TranscriptionClient: retrying wrapper around a speech-to-text backend

Example usage:
    from lecturenotes.audio import MediaInspector, TranscriptionClient, OpenAIWhisperBackend

    inspector = MediaInspector()
    info = inspector.validate("lecture.mp3")
    client = TranscriptionClient(OpenAIWhisperBackend(api_key="..."))
    text = client.transcribe_file("lecture.mp3")
"""

from .chunking import AudioChunk, ChunkSplitter
from .inspector import MediaInfo, MediaInspector
from .transcription import LocalWhisperBackend, OpenAIWhisperBackend, TranscriptionBackend, TranscriptionClient

__all__ = [
    "AudioChunk",
    "ChunkSplitter",
    "MediaInfo",
    "MediaInspector",
    "LocalWhisperBackend",
    "OpenAIWhisperBackend",
    "TranscriptionBackend",
    "TranscriptionClient",
]
