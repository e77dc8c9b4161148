"""Bulk Excel import task."""

import logging
from uuid import UUID

from stajkontrol.config import settings
from stajkontrol.services.excel_import import run_import
from stajkontrol.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="stajkontrol.workers.bulk_import.process_bulk_import")
def process_bulk_import(job_id: str, path: str) -> dict:
    """Run an import job created by ``POST /admin/excel/{job_type}``."""
    logger.info(f"Processing bulk import {job_id}")
    run_import(settings.SYNC_DATABASE_URL, UUID(job_id), path)
    return {"status": "done", "job_id": job_id}
