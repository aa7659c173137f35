"""
Upload storage under settings.UPLOAD_ROOT, served by main.py at /uploads.
"""

import logging
import uuid
from pathlib import Path

from fastapi import HTTPException, UploadFile

from core.config import settings

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
ALLOWED_EXTENSIONS = {
    "field_photo": IMAGE_EXTENSIONS,
}


def _safe_name(filename: str) -> str:
    name = Path(filename)
    stem = "".join(c for c in name.stem if c.isalnum() or c in "._-").strip() or "file"
    return f"{stem}_{uuid.uuid4().hex[:8]}{name.suffix.lower()}"


def _read_limited(file: UploadFile) -> bytes:
    limit = settings.MAX_UPLOAD_MB * 1024 * 1024
    # read one byte past the limit so oversize files are caught without loading them whole
    content = file.file.read(limit + 1)
    if not content:
        raise HTTPException(status_code=400, detail="File kosong")
    if len(content) > limit:
        raise HTTPException(status_code=413, detail=f"Ukuran file melebihi {settings.MAX_UPLOAD_MB} MB")
    return content


def save_upload_file(file: UploadFile, subdir: str) -> str:
    """
    Store an uploaded file as UPLOAD_ROOT/<subdir>/<stem>_<8 hex><ext>.

    Returns:
        URL path the file is served under, e.g. /uploads/field_photo/lahan_1a2b3c4d.jpg

    Raises:
        HTTPException: 400 bad name, extension or empty file, 413 too large, 500 disk error
    """
    if not file or not file.filename:
        raise HTTPException(status_code=400, detail="File tidak valid")

    allowed = ALLOWED_EXTENSIONS.get(subdir, IMAGE_EXTENSIONS)
    if Path(file.filename).suffix.lower() not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Tipe file tidak didukung. Izinkan: {', '.join(sorted(allowed))}",
        )

    content = _read_limited(file)
    target_dir = Path(settings.UPLOAD_ROOT) / subdir
    out_name = _safe_name(file.filename)
    out_path = target_dir / out_name
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(content)
    except OSError as e:
        logger.error(f"Error saving upload {out_path}: {str(e)}")
        out_path.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail="Gagal menyimpan file")

    logger.info(f"Stored upload {out_path} ({len(content)} bytes)")
    return f"{URL_PREFIX}/{subdir}/{out_name}"


def delete_upload(url: str | None) -> bool:
    """
    Remove a file previously returned by save_upload_file.
    URLs outside /uploads are ignored. Returns whether a file was removed.
    """
    if not url or not url.startswith(URL_PREFIX + "/"):
        return False

    root = Path(settings.UPLOAD_ROOT).resolve()
    path = (root / url[len(URL_PREFIX) + 1:]).resolve()
    if root not in path.parents:
        logger.warning(f"Refusing to delete upload outside {root}: {url}")
        return False
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"Error deleting upload {path}: {str(e)}")
        return False
    return True
