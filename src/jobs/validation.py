"""Upload validation, run before any job record or stored file exists."""

from src.jobs.config import JobsConfig
from src.jobs.errors import ValidationError


def validate_upload(
    content_type: str | None,
    filename: str | None,
    size_bytes: int,
    config: JobsConfig,
) -> str:
    """
    Check an upload against the media-type whitelist and size ceiling.

    Returns:
        The normalized content type.

    Raises:
        ValidationError: On a missing name, unsupported type, empty file or
            a file over ``config.max_upload_bytes``.
    """
    if not filename:
        raise ValidationError("A filename is required", field="filename")

    normalized = (content_type or "").split(";")[0].strip().lower()
    if normalized not in config.allowed_content_types:
        raise ValidationError(
            f"Invalid file type {normalized or 'unknown'!r}. "
            f"Please upload an audio file ({', '.join(config.allowed_content_types)}).",
            field="content_type",
        )

    if size_bytes <= 0:
        raise ValidationError("Uploaded file is empty")

    if size_bytes > config.max_upload_bytes:
        limit_mb = config.max_upload_bytes // (1024 * 1024)
        raise ValidationError(
            f"File too large. Maximum size is {limit_mb}MB.",
            too_large=True,
        )

    return normalized
