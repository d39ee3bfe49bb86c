# ========================
# src/utils/job_metadata.py
# ========================

"""
Job Metadata Management

Handles persistent storage of ETL job metadata for the API server.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

QUEUED = "queued"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


class JobMetadataManager:
    """Keeps job status in memory and mirrors it to a JSON file."""

    def __init__(self, metadata_file: str = "data/job_metadata.json"):
        self.metadata_file = Path(metadata_file)
        self.metadata_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self.jobs: Dict[str, Dict[str, Any]] = self.load_job_metadata()

    def save_job_metadata(self) -> None:
        """Save all job metadata to persistent storage."""
        try:
            with open(self.metadata_file, 'w') as f:
                json.dump(self.jobs, f, indent=2, default=str)
            logger.debug(f"Saved job metadata for {len(self.jobs)} jobs")
        except OSError as e:
            logger.error(f"Failed to save job metadata: {e}")

    def load_job_metadata(self) -> Dict[str, Dict[str, Any]]:
        """Load job metadata from persistent storage."""
        if not self.metadata_file.exists():
            return {}
        try:
            with open(self.metadata_file, 'r') as f:
                data = json.load(f)
            logger.info(f"Loaded metadata for {len(data)} persisted jobs")
            return data
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load job metadata: {e}")
            return {}

    def create_job(self, job_id: str, job_type: str, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Register a new queued job."""
        job = {
            'job_id': job_id,
            'type': job_type,
            'status': QUEUED,
            'created_at': datetime.now().isoformat(),
            'parameters': parameters or {}
        }
        with self._lock:
            self.jobs[job_id] = job
            self.save_job_metadata()
        return job

    def update_job(self, job_id: str, **fields: Any) -> None:
        """Update fields of an existing job and persist."""
        with self._lock:
            self.jobs[job_id].update(fields)
            self.save_job_metadata()

    def mark_processing(self, job_id: str) -> None:
        self.update_job(job_id, status=PROCESSING, started_at=datetime.now().isoformat())

    def mark_completed(self, job_id: str, results: Any) -> None:
        self.update_job(job_id, status=COMPLETED, completed_at=datetime.now().isoformat(), results=results)

    def mark_failed(self, job_id: str, error: str) -> None:
        self.update_job(job_id, status=FAILED, failed_at=datetime.now().isoformat(), error=error)

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self.jobs.get(job_id)
