"""
Client module for communicating with the lecture processing API server.

This module provides a simple interface for scripts to:
- Upload lecture recordings for processing
- Poll processing status
- Retrieve transcripts and notes
- Request flashcards and quizzes
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import ConnectionError, RequestException

from ..config import ConfigManager


class APIClient:
    """Client for communicating with the lecture processing API server."""

    def __init__(self, base_url: Optional[str] = None, timeout: int = 30):
        """
        Initialize the API client.

        Args:
            base_url: Base URL of the API server (defaults to API_BASE_URL)
            timeout: Default request timeout in seconds
        """
        base_url = base_url or ConfigManager().get("API_BASE_URL")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def health_check(self) -> Dict[str, Any]:
        """
        Check if the API server is healthy.

        Raises:
            ConnectionError: If unable to connect to the server
        """
        try:
            return self._request("GET", "/health")
        except RequestException as e:
            raise ConnectionError(f"Unable to connect to API server: {e}")

    def upload_lecture(self, file_path: str, file_name: Optional[str] = None, timeout: int = 300) -> Dict[str, Any]:
        """
        Upload a lecture recording for processing.

        Args:
            file_path: Path to the audio or video file
            file_name: Display name for the lecture; uses the record endpoint when given
            timeout: Request timeout in seconds

        Returns:
            Dictionary containing job_id and initial status

        Raises:
            FileNotFoundError: If the file doesn't exist
            RequestException: If the upload fails
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Lecture file not found: {file_path}")

        endpoint = "/api/lectures/record" if file_name else "/api/lectures/upload"
        data = {"fileName": file_name} if file_name else {}

        with open(file_path, "rb") as lecture_file:
            files = {"lecture": (file_path.name, lecture_file)}
            return self._request("POST", endpoint, files=files, data=data, timeout=timeout)

    def get_status(self, job_id: str) -> Dict[str, Any]:
        """Get the status of a lecture job."""
        return self._request("GET", f"/api/lectures/status/{job_id}")

    def list_jobs(self, status_filter: Optional[str] = None) -> Dict[str, Any]:
        params = {"status": status_filter} if status_filter else None
        return self._request("GET", "/api/lectures/jobs", params=params)

    def get_transcript(self, job_id: str) -> str:
        return self._request("GET", f"/api/lectures/{job_id}/transcript")["transcript"]

    def get_notes(self, job_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/lectures/{job_id}/notes")["notes"]

    def get_flashcards(self, job_id: str, count: int = 15, timeout: int = 300) -> List[Dict[str, Any]]:
        """Get (generating on first request) flashcards for a completed lecture."""
        response = self._request("POST", f"/api/lectures/{job_id}/flashcards", json={"count": count}, timeout=timeout)
        return response["flashcards"]

    def get_quiz(self, job_id: str, count: int = 10, timeout: int = 300) -> List[Dict[str, Any]]:
        """Get (generating on first request) quiz questions for a completed lecture."""
        response = self._request("POST", f"/api/lectures/{job_id}/quiz", json={"count": count}, timeout=timeout)
        return response["questions"]

    def delete_job(self, job_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/lectures/{job_id}")

    def wait_for_completion(self, job_id: str, poll_interval: float = 5, timeout: float = 3600) -> Dict[str, Any]:
        """
        Wait for a job to complete and return its final status.

        Args:
            job_id: Unique identifier for the job
            poll_interval: Time to wait between status checks (seconds)
            timeout: Maximum time to wait (seconds)

        Returns:
            Final status, including transcript and notes under ``data``

        Raises:
            TimeoutError: If the job doesn't complete within the timeout
            RequestException: If the job failed or any API call fails
        """
        start_time = time.time()

        while time.time() - start_time < timeout:
            status_info = self.get_status(job_id)
            status = status_info.get("status")

            if status == "completed":
                return status_info
            elif status == "failed":
                error = status_info.get("error") or "Unknown error"
                raise RequestException(f"Job failed: {error}")

            time.sleep(poll_interval)

        raise TimeoutError(f"Job {job_id} did not complete within {timeout} seconds")

    def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.request(method, f"{self.base_url}{path}", timeout=timeout or self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except RequestException as e:
            raise RequestException(f"{method} {path} failed: {e}")


# Convenience function for quick uploads
def upload_and_process(
    file_path: str,
    api_url: Optional[str] = None,
    wait_for_result: bool = True,
    poll_interval: float = 5,
    timeout: float = 3600,
) -> Dict[str, Any]:
    """
    Upload a lecture and optionally wait for processing to complete.

    Returns:
        Either the upload response or the final job status
    """
    client = APIClient(api_url)
    upload_result = client.upload_lecture(file_path)

    if wait_for_result:
        return client.wait_for_completion(upload_result["job_id"], poll_interval, timeout)
    return upload_result
