"""Request-scoped batch grading.

Every request builds its own :class:`BatchContext`; nothing about a batch is
kept in module state. Documents are graded on a thread pool and results come
back in upload order (archive entries in stored order at the archive's place).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial

from psd_grader.aggregate import BatchSummary, summarize
from psd_grader.archive import iter_archive_documents
from psd_grader.config import ALLOWED_EXTENSIONS, ARCHIVE_EXTENSION, GraderSettings, load_settings
from psd_grader.criteria import Criteria
from psd_grader.decoder import DocumentDecoder, get_decoder
from psd_grader.document_parser import RawDocument, analyze_document
from psd_grader.errors import ArchiveError, ParseError
from psd_grader.scoring import GradingResult, error_result, grade_analysis
from psd_grader.submission import decode_submission_filename

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    status: str
    message: str
    warnings: list[str]


def _normalize_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[-1].lower()


def validate_upload(filename: str, content_bytes: bytes, max_bytes: int | None = None) -> ValidationResult:
    warnings: list[str] = []
    extension = _normalize_extension(filename)

    if not content_bytes:
        return ValidationResult(
            status="error",
            message=f"Empty upload '{filename}' is not allowed.",
            warnings=warnings,
        )

    if max_bytes is not None and len(content_bytes) > max_bytes:
        return ValidationResult(
            status="error",
            message=f"Upload '{filename}' exceeds the {max_bytes // (1024 * 1024)} MB limit.",
            warnings=warnings,
        )

    if extension not in ALLOWED_EXTENSIONS:
        warnings.append(
            f"Skipped '{filename}': unsupported file type '{extension or 'unknown'}'. "
            "Supported types: PSD, ZIP."
        )
        return ValidationResult(
            status="warning",
            message="Unsupported file type.",
            warnings=warnings,
        )

    return ValidationResult(
        status="success",
        message="File accepted for grading.",
        warnings=warnings,
    )


@dataclass(frozen=True)
class DocumentJob:
    filename: str
    content: bytes = b""
    source_archive: str | None = None
    error: str | None = None


@dataclass
class BatchContext:
    criteria: Criteria
    settings: GraderSettings
    decoder: DocumentDecoder
    warnings: list[str] = field(default_factory=list)
    decode_pool: Executor | None = None


@dataclass(frozen=True)
class BatchResult:
    results: list[GradingResult]
    summary: BatchSummary
    warnings: list[str]

    def to_dict(self) -> dict:
        return {
            "results": [result.to_dict() for result in self.results],
            "summary": self.summary.to_dict(),
            "warnings": list(self.warnings),
        }


def _entry_basename(name: str) -> str:
    return name.replace("\\", "/").rsplit("/", 1)[-1]


def expand_upload(upload: RawDocument, context: BatchContext) -> list[DocumentJob]:
    """Turn one upload into zero or more grading jobs."""

    validation = validate_upload(upload.filename, upload.content, context.settings.max_upload_bytes)
    if validation.status == "warning":
        context.warnings.extend(validation.warnings)
        return []
    if validation.status == "error":
        return [DocumentJob(filename=upload.filename, error=validation.message)]

    if _normalize_extension(upload.filename) != ARCHIVE_EXTENSION:
        return [DocumentJob(filename=upload.filename, content=upload.content)]

    try:
        entries = iter_archive_documents(upload.filename, upload.content)
    except ArchiveError as exc:
        logger.warning("Archive rejected: %s", exc)
        return [DocumentJob(filename=upload.filename, error=str(exc))]

    if not entries:
        context.warnings.append(f"No PSD files found in '{upload.filename}'.")
    return [
        DocumentJob(
            filename=_entry_basename(entry.name),
            content=entry.content or b"",
            source_archive=upload.filename,
            error=entry.error,
        )
        for entry in entries
    ]


def grade_document(job: DocumentJob, context: BatchContext) -> GradingResult:
    """Parse, extract and score one document; failures become error results."""

    submission = decode_submission_filename(job.filename)
    if job.error:
        return error_result(job.filename, job.error, context.criteria, submission, job.source_archive)

    try:
        analysis = analyze_document(
            RawDocument(filename=job.filename, content=job.content),
            context.decoder,
            timeout=context.settings.decode_timeout_seconds,
            executor=context.decode_pool,
        )
    except ParseError as exc:
        logger.warning("Could not analyze %s: %s", job.filename, exc)
        return error_result(job.filename, str(exc), context.criteria, submission, job.source_archive)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected failure while grading %s", job.filename)
        return error_result(job.filename, f"Unexpected error: {exc}", context.criteria, submission, job.source_archive)

    return grade_analysis(analysis, context.criteria, job.filename, submission, job.source_archive)


def process_batch(
    uploads: Sequence[RawDocument],
    criteria: Criteria,
    settings: GraderSettings | None = None,
    decoder: DocumentDecoder | None = None,
) -> BatchResult:
    context = BatchContext(
        criteria=criteria,
        settings=settings or load_settings(),
        decoder=decoder or get_decoder(),
    )

    jobs: list[DocumentJob] = []
    for upload in uploads:
        jobs.extend(expand_upload(upload, context))

    logger.info("Grading %d documents from %d uploads", len(jobs), len(uploads))
    workers = context.settings.max_workers
    context.decode_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="decode")
    try:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="grade") as pool:
            results = list(pool.map(partial(grade_document, context=context), jobs))
    finally:
        context.decode_pool.shutdown(wait=False, cancel_futures=True)
        context.decode_pool = None

    summary = summarize(results, context.settings.pass_threshold)
    return BatchResult(results=results, summary=summary, warnings=list(context.warnings))
