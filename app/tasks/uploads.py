from __future__ import annotations

from app.core.celery_app import celery_app
from app.services.upload_service import cleanup_temp_files


@celery_app.task(name="uploads.cleanup_temp")
def cleanup_temp_uploads(max_age_seconds: int | None = None) -> int:
    return cleanup_temp_files(max_age_seconds)
