"""
Validation of uploads and batch sizes before they reach the matching engine
"""
from pathlib import PurePath
from typing import Iterable, Tuple

from hrmatch.utils.exceptions import ValidationError
from hrmatch.utils.settings import FileSettings, LimitSettings


def validate_file(filename: str, size: int, options: FileSettings = None) -> None:
    opts = options or FileSettings()

    if opts.allowed_extensions:
        ext = PurePath(filename or "").suffix.lower()
        if not ext or ext not in opts.allowed_extensions:
            raise ValidationError(
                f"Invalid file extension. Allowed: {', '.join(opts.allowed_extensions)}",
                field="filename",
                value=filename,
            )

    if opts.min_size and size < opts.min_size:
        raise ValidationError(f"File too small. Minimum size: {opts.min_size} bytes", field="size", value=size)

    if opts.max_size and size > opts.max_size:
        raise ValidationError(
            f"File too large. Maximum size: {opts.max_size / 1024 / 1024:.0f}MB",
            field="size",
            value=size,
        )


def validate_files(files: Iterable[Tuple[str, int]], options: FileSettings = None, field: str = "files") -> None:
    """Validate (filename, size) pairs; the first bad file aborts with its position."""
    files = list(files)
    if not files:
        raise ValidationError("No files provided", field=field)

    for i, (filename, size) in enumerate(files):
        try:
            validate_file(filename, size, options)
        except ValidationError as e:
            raise ValidationError(f"File {i + 1}: {e.message}", field=field, value=filename) from e


def validate_batch_limits(jd_count: int, resume_count: int, limits: LimitSettings = None) -> None:
    opts = limits or LimitSettings()

    if opts.max_jd_files and jd_count > opts.max_jd_files:
        raise ValidationError(
            f"Too many job descriptions. Maximum: {opts.max_jd_files}, provided: {jd_count}",
            field="job_descriptions",
        )

    if opts.max_resume_files and resume_count > opts.max_resume_files:
        raise ValidationError(
            f"Too many resumes. Maximum: {opts.max_resume_files}, provided: {resume_count}",
            field="resumes",
        )

    total_combinations = jd_count * resume_count
    if opts.max_combinations and total_combinations > opts.max_combinations:
        raise ValidationError(
            f"Too many combinations. Maximum: {opts.max_combinations}, requested: "
            f"{total_combinations} ({jd_count} JDs x {resume_count} resumes)",
            field="combinations",
        )
