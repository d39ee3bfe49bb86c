# ========================
# api_server.py
# ========================

"""
FastAPI Server for the Tracks ETL Pipeline

Provides REST API endpoints that run the transform, upload and load steps as
background jobs and report their status.
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, Any, Optional

from fastapi import FastAPI, HTTPException, BackgroundTasks, Query
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from src.tracks_etl.orchestrator import TransformationPipeline, PipelineError
from src.tracks_etl.storage import FileUploader, StorageError, create_object_store
from src.tracks_etl.loader import PostgresLoader, LoadError
from src.tracks_etl.views import create_views
from src.utils.config import Config, ConfigurationError
from src.utils.logging_setup import setup_logging
from src.utils.job_metadata import JobMetadataManager, PROCESSING

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Configuration
config = Config()
job_manager = JobMetadataManager(config.JOB_METADATA_FILE)

# Initialize FastAPI app
app = FastAPI(
    title="Tracks ETL API",
    description="Transform tracks/artists CSVs, upload them to object storage and load them into PostgreSQL",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

JOB_NOT_FOUND_MSG = "Job not found"


class ETLJobRunner:
    """Runs ETL steps in the background and records their outcome."""

    @staticmethod
    def run_transform(job_id: str, min_duration: Optional[int]) -> None:
        try:
            logger.info(f"Starting transform job {job_id}")
            job_manager.mark_processing(job_id)

            pipeline = TransformationPipeline(config=config, min_duration=min_duration)
            results = pipeline.run()

            job_manager.mark_completed(job_id, results)
            logger.info(f"Transform job {job_id} completed successfully")
        except PipelineError as e:
            logger.error(f"Transform job {job_id} failed: {e}")
            job_manager.mark_failed(job_id, str(e))
        except Exception as e:
            logger.exception(f"Transform job {job_id} crashed: {e}")
            job_manager.mark_failed(job_id, f"Unexpected error: {e}")

    @staticmethod
    def run_upload(job_id: str, store, files: Dict[str, str], retries: int) -> None:
        try:
            job_manager.mark_processing(job_id)
            uploader = FileUploader(store, retry_attempts=retries, retry_delay=config.UPLOAD_RETRY_DELAY)
            results = uploader.upload_files(files)

            failed = [key for key, location in results.items() if location is None]
            if failed:
                job_manager.mark_failed(job_id, f"Failed uploads: {', '.join(failed)}")
                job_manager.update_job(job_id, results=results)
            else:
                job_manager.mark_completed(job_id, results)
        except Exception as e:
            logger.exception(f"Upload job {job_id} crashed: {e}")
            job_manager.mark_failed(job_id, f"Unexpected error: {e}")

    @staticmethod
    def run_load(job_id: str, store, loader: PostgresLoader, tables: Dict[str, str], with_views: bool) -> None:
        try:
            job_manager.mark_processing(job_id)
            results = {}
            for key, table in tables.items():
                results[table] = loader.load_key(store, key, table)
            if with_views:
                create_views(loader, config.TRACKS_TABLE, config.ARTISTS_TABLE)
            job_manager.mark_completed(job_id, results)
        except (LoadError, StorageError) as e:
            logger.error(f"Load job {job_id} failed: {e}")
            job_manager.mark_failed(job_id, str(e))
        except Exception as e:
            logger.exception(f"Load job {job_id} crashed: {e}")
            job_manager.mark_failed(job_id, f"Unexpected error: {e}")


def _queue_job(job_type: str, parameters: Dict[str, Any]) -> str:
    job_id = str(uuid.uuid4())
    job_manager.create_job(job_id, job_type, parameters)
    logger.info(f"Queued {job_type} job {job_id}")
    return job_id


def _queued_response(job_id: str, job_type: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "job_id": job_id,
        "type": job_type,
        "status": "queued",
        "parameters": parameters,
        "estimated_processing_info": "Use /status/{job_id} to check progress"
    }


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Tracks ETL API",
        "version": "1.0.0",
        "endpoints": {
            "transform": "POST /transform - Filter and enrich tracks, then artists",
            "upload": "POST /upload - Upload transformed files to object storage",
            "load": "POST /load - Load stored files into PostgreSQL",
            "status": "GET /status/{job_id} - Check job status",
            "jobs": "GET /jobs - List jobs",
            "health": "GET /health - Health check",
            "api_docs": "/docs - API documentation"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "active_jobs": len([j for j in job_manager.jobs.values() if j['status'] == PROCESSING])
    }


@app.post("/transform")
async def run_transform(
    background_tasks: BackgroundTasks,
    min_duration: Optional[int] = Query(None, ge=0, description="Minimum track duration in ms")
):
    """Run the tracks -> artists transformation."""
    parameters = {
        "min_duration": config.MIN_DURATION_MS if min_duration is None else min_duration,
        "tracks_input": config.TRACKS_INPUT,
        "artists_input": config.ARTISTS_INPUT
    }
    job_id = _queue_job("transform", parameters)
    background_tasks.add_task(ETLJobRunner.run_transform, job_id, min_duration)
    return _queued_response(job_id, "transform", parameters)


@app.post("/upload")
async def run_upload(
    background_tasks: BackgroundTasks,
    retries: Optional[int] = Query(None, ge=1, le=10, description="Upload attempts per file")
):
    """Upload the transformed CSV files to the configured object store."""
    try:
        store = create_object_store(config)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    files = {config.TRACKS_OUTPUT: config.TRACKS_KEY, config.ARTISTS_OUTPUT: config.ARTISTS_KEY}
    attempts = retries or config.UPLOAD_RETRY_ATTEMPTS
    parameters = {"files": files, "retries": attempts}

    job_id = _queue_job("upload", parameters)
    background_tasks.add_task(ETLJobRunner.run_upload, job_id, store, files, attempts)
    return _queued_response(job_id, "upload", parameters)


@app.post("/load")
async def run_load(
    background_tasks: BackgroundTasks,
    with_views: bool = Query(True, description="Create the analytical views after loading")
):
    """Load the stored CSV files into PostgreSQL."""
    try:
        store = create_object_store(config)
        loader = PostgresLoader(config)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    tables = {config.TRACKS_KEY: config.TRACKS_TABLE, config.ARTISTS_KEY: config.ARTISTS_TABLE}
    parameters = {"tables": tables, "with_views": with_views}

    job_id = _queue_job("load", parameters)
    background_tasks.add_task(ETLJobRunner.run_load, job_id, store, loader, tables, with_views)
    return _queued_response(job_id, "load", parameters)


@app.get("/status/{job_id}")
async def get_job_status(job_id: str):
    """Get the status of a job."""
    job = job_manager.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)
    return job


@app.get("/jobs")
async def list_jobs(
    status: Optional[str] = Query(None, description="Filter by status: queued, processing, completed, failed"),
    limit: int = Query(50, ge=1, le=100, description="Maximum number of jobs to return")
):
    """List jobs, newest first."""
    jobs = list(job_manager.jobs.values())
    if status:
        jobs = [j for j in jobs if j['status'] == status]
    jobs.sort(key=lambda j: j.get('created_at', ''), reverse=True)
    return {"total": len(jobs), "jobs": jobs[:limit]}


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    logger.info(f"Starting Tracks ETL API server on {host}:{port}")
    uvicorn.run(
        "api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server(port=config.API_PORT)
