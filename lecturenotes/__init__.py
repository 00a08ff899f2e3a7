"""
Lecture recording to study notes pipeline.

Subpackages:
- audio: probing, chunking and transcription of recordings
- study: notes, flashcard and quiz generation
- server: job store, pipeline, background runner and Flask API
- client: HTTP client for the API
"""

__version__ = "0.1.0"
