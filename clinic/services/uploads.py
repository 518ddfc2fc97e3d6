import logging
import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)

UPLOAD_DIR = 'medication_images'


def check_upload(f) -> str:
    """Return the content type of ``f`` or raise ``ValueError``."""
    size_mb = (f.size or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValueError(f'File too large (max {settings.UPLOAD_MAX_MB} MB)')
    ctype = getattr(f, 'content_type', '') or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValueError('Unsupported file type')
    return ctype


def store_upload(f) -> dict:
    ctype = check_upload(f)
    _, ext = os.path.splitext(f.name or '')
    file_id = f'{UPLOAD_DIR}/{uuid.uuid4().hex}{ext.lower()}'
    stored = default_storage.save(file_id, f)
    logger.info('stored upload %s (%s, %d bytes)', stored, ctype, f.size or 0)
    return {
        'imageUrl': default_storage.url(stored),
        'fileName': f.name,
        'size': f.size or 0,
        'type': ctype,
        'fileId': stored,
    }
