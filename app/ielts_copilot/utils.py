"""Utility functions for the Flask application."""
import os
from typing import Optional, Tuple
from uuid import uuid4

from flask import session
from werkzeug.datastructures import FileStorage

from app.ielts_copilot.services.errors import ValidationError
from app.ielts_copilot.services.ielts_prompts import WritingTaskType

IMAGE_TOO_LARGE_MESSAGE = 'Image size should not exceed 4MB.'


def word_count(text: Optional[str]) -> int:
    """Count whitespace-separated words."""
    if text is not None and not isinstance(text, str):
        raise ValidationError("Essay text must be a string.")
    return len((text or '').split())


def word_count_status(text: Optional[str], task_type) -> Tuple[int, str]:
    """Return (count, status) where status is 'empty', 'short' or 'ok' against the task minimum."""
    minimum = WritingTaskType.parse(task_type).minimum_words
    count = word_count(text)
    if count == 0:
        return count, 'empty'
    if count < minimum:
        return count, 'short'
    return count, 'ok'


def _upload_size(upload: FileStorage) -> int:
    """Size of an upload in bytes, leaving the stream at the start."""
    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_image_upload(
    upload: Optional[FileStorage],
    max_bytes: int,
    allowed_extensions,
) -> Optional[FileStorage]:
    """
    Check an uploaded image at capture time.

    Returns None when no file was chosen, the upload itself when it passes.
    Raises ValidationError on a disallowed extension or a file over max_bytes.
    """
    if upload is None or not upload.filename:
        return None

    if not ('.' in upload.filename and
            upload.filename.rsplit('.', 1)[1].lower() in allowed_extensions):
        raise ValidationError('Invalid file type. Allowed: PNG, JPG, GIF, WEBP, HEIC')

    if _upload_size(upload) > max_bytes:
        raise ValidationError(IMAGE_TOO_LARGE_MESSAGE)
    return upload


def get_browser_session_id() -> str:
    """Stable id for the current browser session, created on first use."""
    session_id = session.get('submission_session_id')
    if not session_id:
        session_id = uuid4().hex
        session['submission_session_id'] = session_id
    return session_id
