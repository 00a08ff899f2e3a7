"""
Flask API server for lecture processing.

This server provides endpoints for:
- Uploading lecture recordings for processing
- Checking processing status
- Retrieving transcripts and notes
- Generating flashcards and quizzes from completed lectures
- Chatting with a study assistant, optionally about a completed lecture

Processing runs on a background thread pool; clients poll the status endpoint.
"""

import atexit
import logging
import os
import tempfile
from datetime import datetime
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.utils import secure_filename

from ..audio.inspector import MAX_FILE_SIZE
from ..config import ConfigManager
from ..errors import GenerationError, JobNotFound, JobNotReady, LectureNotesError, PipelineUnavailable
from ..models import JobStatus
from ..study.assistant import valid_messages
from ..study.content import DEFAULT_FLASHCARD_COUNT, DEFAULT_QUIZ_COUNT
from .service import LectureService

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"wav", "mp3", "mp4", "m4a", "flac", "aac", "ogg", "webm", "wma", "mov", "mkv"}


def allowed_file(filename: str) -> bool:
    """Check if the uploaded file has an allowed extension."""
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def create_app(service: Optional[LectureService] = None, config: Optional[ConfigManager] = None) -> Flask:
    """
    Create the Flask application.

    Args:
        service: LectureService to serve; built from ``config`` and started if omitted
        config: Configuration used when building the service
    """
    if service is None:
        service = LectureService.from_config(config)
        service.start()
        atexit.register(service.shutdown)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_FILE_SIZE
    app.extensions["lecture_service"] = service
    CORS(app)

    @app.errorhandler(JobNotFound)
    def handle_not_found(error):
        return jsonify({"error": "Job not found", "message": str(error)}), 404

    @app.errorhandler(JobNotReady)
    def handle_not_ready(error):
        return jsonify({"error": "Lecture not ready", "message": f"Job status: {error.status}"}), 400

    @app.errorhandler(GenerationError)
    def handle_generation_error(error):
        logger.error(f"Generation failed: {error}")
        return jsonify({"error": "Generation failed", "message": str(error)}), 502

    @app.errorhandler(PipelineUnavailable)
    def handle_unavailable(error):
        logger.error(f"Pipeline unavailable: {error}")
        return jsonify({"error": "Service unavailable", "message": str(error)}), 503

    @app.errorhandler(413)
    def handle_too_large(error):
        max_mb = app.config["MAX_CONTENT_LENGTH"] / 1024 / 1024
        return jsonify({"error": "File too large", "message": f"Maximum upload size is {max_mb:.0f}MB"}), 413

    @app.errorhandler(LectureNotesError)
    def handle_lecture_error(error):
        logger.error(f"Request failed: {error}")
        return jsonify({"error": "Request failed", "message": str(error)}), 500

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint."""
        runner_status = service.runner.get_status()
        return jsonify(
            {
                "status": "healthy",
                "timestamp": datetime.now().isoformat(),
                "runner_running": runner_status["is_running"],
                "running_jobs": len(runner_status["running_jobs"]),
            }
        )

    def start_processing(default_name: Optional[str] = None):
        if "lecture" not in request.files:
            return jsonify({"error": "No file uploaded", "message": "Please upload a lecture audio or video file"}), 400

        file = request.files["lecture"]
        if file.filename == "":
            return jsonify({"error": "No file selected"}), 400

        if not allowed_file(file.filename):
            allowed_types = ", ".join(sorted(ALLOWED_EXTENSIONS))
            return jsonify({"error": f"File type not allowed. Allowed types: {allowed_types}"}), 400

        original_filename = secure_filename(file.filename)
        if not original_filename or "." not in original_filename:
            return jsonify({"error": "Invalid filename"}), 400

        display_name = request.form.get("fileName") or default_name or original_filename

        # Save file temporarily; the runner removes it once the pipeline finishes
        with tempfile.NamedTemporaryFile(
            delete=False, suffix=f".{original_filename.rsplit('.', 1)[1].lower()}"
        ) as tmp_file:
            file.save(tmp_file.name)
            temp_file_path = tmp_file.name

        try:
            file_size = os.path.getsize(temp_file_path)
            if file_size == 0:
                os.unlink(temp_file_path)
                return jsonify({"error": "Empty file not allowed"}), 400

            job_id = service.create_job(file_name=display_name, file_size=file_size)
            service.run_pipeline(temp_file_path, display_name, job_id, remove_source=True)
        except Exception:
            if os.path.exists(temp_file_path):
                os.unlink(temp_file_path)
            raise

        logger.info(f"Received lecture {display_name} ({file_size / 1024 / 1024:.2f}MB) as job {job_id}")
        return jsonify(
            {
                "job_id": job_id,
                "status": JobStatus.PENDING.value,
                "message": "Lecture received. Processing has started.",
            }
        ), 202

    @app.route("/api/lectures/upload", methods=["POST"])
    def upload_lecture():
        """
        Upload a pre-recorded lecture for processing.

        Expected form data:
        - lecture: Audio or video file

        Returns:
        - job_id: Identifier for polling the status endpoint
        """
        return start_processing()

    @app.route("/api/lectures/record", methods=["POST"])
    def record_lecture():
        """Process a browser recording; an optional fileName form field names it."""
        return start_processing(default_name="Recorded Lecture")

    @app.route("/api/lectures/status/<job_id>", methods=["GET"])
    def get_job_status(job_id: str):
        """
        Get the status of a lecture job.

        Includes transcript and notes under ``data`` once the job completed.
        """
        job = service.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return jsonify(job.to_dict(include_results=True))

    @app.route("/api/lectures/jobs", methods=["GET"])
    def list_jobs():
        """List jobs newest first; ``status`` query parameter filters."""
        status_filter = request.args.get("status")
        try:
            status = JobStatus(status_filter) if status_filter else None
        except ValueError:
            return jsonify({"error": f"Unknown status: {status_filter}"}), 400

        jobs = service.list_jobs(status)
        return jsonify({"jobs": [job.to_dict() for job in jobs], "total": len(jobs)})

    @app.route("/api/lectures/<job_id>/transcript", methods=["GET"])
    def get_transcript(job_id: str):
        return jsonify({"job_id": job_id, "transcript": service.load_transcript(job_id)})

    @app.route("/api/lectures/<job_id>/notes", methods=["GET"])
    def get_notes(job_id: str):
        return jsonify({"job_id": job_id, "notes": service.load_notes(job_id).to_dict()})

    @app.route("/api/lectures/<job_id>/flashcards", methods=["POST"])
    def generate_flashcards(job_id: str):
        count = _requested_count(DEFAULT_FLASHCARD_COUNT)
        if count is None:
            return jsonify({"error": "count must be a positive integer"}), 400

        flashcards = service.get_flashcards(job_id, count)
        return jsonify({"job_id": job_id, "flashcards": [card.to_dict() for card in flashcards]})

    @app.route("/api/lectures/<job_id>/quiz", methods=["POST"])
    def generate_quiz(job_id: str):
        count = _requested_count(DEFAULT_QUIZ_COUNT)
        if count is None:
            return jsonify({"error": "count must be a positive integer"}), 400

        questions = service.get_quiz(job_id, count)
        return jsonify({"job_id": job_id, "questions": [question.to_dict() for question in questions]})

    @app.route("/api/chat", methods=["POST"])
    def chat():
        """
        Send a conversation to the study assistant.

        Expected JSON body:
        - messages: Non-empty list of {"role": "user" | "assistant", "content": str}
        - context: Optional description of what the user is studying
        - jobId: Optional completed lecture whose transcript grounds the answer
        """
        body = request.get_json(silent=True) or {}
        messages = body.get("messages")
        if not valid_messages(messages):
            return jsonify({"error": "Invalid request", "message": "Messages array is required"}), 400

        context = body.get("context") if isinstance(body.get("context"), str) else None
        reply = service.chat(messages, context=context, job_id=body.get("jobId"))
        return jsonify({"message": reply, "role": "assistant"})

    @app.route("/api/lectures/<job_id>", methods=["DELETE"])
    def delete_job(job_id: str):
        """Delete a lecture and all associated files. A run in flight is not stopped."""
        service.delete_job(job_id)
        return jsonify({"message": "Lecture deleted successfully"})

    return app


def _requested_count(default: int) -> Optional[int]:
    body = request.get_json(silent=True) or {}
    count = body.get("count", default)
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        return None
    return count


def main():
    config = ConfigManager()

    log_level = config.get("LOG_LEVEL").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    app = create_app(config=config)
    app.run(host=config.get("HOST"), port=config.get_int("PORT", 5001))


if __name__ == "__main__":
    main()
