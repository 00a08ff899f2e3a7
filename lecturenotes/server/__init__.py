"""
Lecture processing server package.

This package provides the durable job store, the lecture pipeline, the
thread-pool runner that executes it in the background, and a Flask API.
"""

from .app import create_app
from .job_store import JobStore
from .processor import LectureProcessor
from .runner import PipelineRunner
from .service import LectureService

__all__ = ["create_app", "JobStore", "LectureProcessor", "LectureService", "PipelineRunner"]
