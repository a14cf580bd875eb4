# app/services/upload_service.py
"""Almacenamiento local de documentos adjuntos a movimientos.

El archivo se escribe primero en ``temp/`` y se mueve a ``documentos/``
cuando está completo; lo que quede en ``temp/`` lo limpia la tarea
periódica ``uploads.cleanup_temp``.
"""

from __future__ import annotations

import secrets
import time
from pathlib import Path

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.logging import get_logger
from app.services.exceptions import AttachmentError

logger = get_logger("app.uploads")

DOCUMENTS_DIR = "documentos"
TEMP_DIR = "temp"
_CHUNK_SIZE = 64 * 1024


def _root(base_dir: Path | None = None) -> Path:
    return Path(base_dir) if base_dir is not None else settings.upload_path


def ensure_upload_dirs(base_dir: Path | None = None) -> None:
    root = _root(base_dir)
    for name in (DOCUMENTS_DIR, TEMP_DIR):
        (root / name).mkdir(parents=True, exist_ok=True)


def _unique_name(prefix: str, suffix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"


async def save_attachment(upload: UploadFile, base_dir: Path | None = None) -> str:
    """Guarda el adjunto y devuelve su ruta relativa (``documentos/doc-...``)."""
    suffix = Path(upload.filename or "").suffix.lower()
    if suffix not in settings.UPLOAD_ALLOWED_EXTENSIONS:
        raise AttachmentError(
            "Tipo de archivo no permitido",
            extension=suffix or None,
            permitidos=settings.UPLOAD_ALLOWED_EXTENSIONS,
        )

    root = _root(base_dir)
    ensure_upload_dirs(root)
    temp_path = root / TEMP_DIR / _unique_name("temp", suffix)
    size = 0
    # la escritura a disco corre en el threadpool para no bloquear el event loop
    handle = await run_in_threadpool(temp_path.open, "wb")
    try:
        try:
            while chunk := await upload.read(_CHUNK_SIZE):
                size += len(chunk)
                if size > settings.UPLOAD_MAX_BYTES:
                    raise AttachmentError(
                        "El archivo excede el tamaño máximo permitido",
                        max_bytes=settings.UPLOAD_MAX_BYTES,
                    )
                await run_in_threadpool(handle.write, chunk)
        finally:
            await run_in_threadpool(handle.close)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise

    relative = f"{DOCUMENTS_DIR}/{_unique_name('doc', suffix)}"
    await run_in_threadpool(temp_path.replace, root / relative)
    logger.info("Adjunto almacenado", extra={"archivo": relative, "bytes": size})
    return relative


def delete_attachment(relative: str | None, base_dir: Path | None = None) -> bool:
    """Elimina un adjunto huérfano (p. ej. tras un rollback)."""
    if not relative:
        return False
    root = _root(base_dir).resolve()
    path = (root / relative).resolve()
    if root not in path.parents:
        logger.warning("Ruta de adjunto fuera del directorio de uploads", extra={"archivo": relative})
        return False
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    logger.info("Adjunto eliminado", extra={"archivo": relative})
    return True


def cleanup_temp_files(
    max_age_seconds: int | None = None,
    base_dir: Path | None = None,
    now: float | None = None,
) -> int:
    """Borra archivos de ``temp/`` más antiguos que ``max_age_seconds``."""
    max_age = max_age_seconds if max_age_seconds is not None else settings.TEMP_UPLOAD_MAX_AGE_SECONDS
    temp_dir = _root(base_dir) / TEMP_DIR
    if not temp_dir.is_dir():
        return 0

    now = now if now is not None else time.time()
    removed = 0
    for path in temp_dir.iterdir():
        if not path.is_file():
            continue
        if now - path.stat().st_mtime > max_age:
            path.unlink(missing_ok=True)
            removed += 1
    if removed:
        logger.info("Archivos temporales eliminados", extra={"cantidad": removed})
    return removed
