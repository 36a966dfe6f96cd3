from __future__ import annotations

import json

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from psd_grader.config import configure_logging, load_settings
from psd_grader.criteria import Criteria, load_default_criteria, parse_criteria
from psd_grader.decoder import get_decoder
from psd_grader.document_parser import RawDocument
from psd_grader.export import RESULTS_FILENAME, gradebook_csv, gradebook_filename, results_csv
from psd_grader.filename_patterns import (
    MODE_TEMPLATE,
    compile_filename_pattern,
    display_pattern,
    pattern_example,
)
from psd_grader.pipeline import BatchResult, process_batch
from psd_grader.submission import decode_submission_filename

SETTINGS = load_settings()
configure_logging(SETTINGS.log_level)

app = FastAPI(title="PSD Grading API")


@app.middleware("http")
async def api_prefix_alias(request, call_next):
    """Accept both `/path` and `/api/path` for frontend compatibility."""
    if request.scope.get("path", "").startswith("/api/"):
        request.scope["path"] = request.scope["path"][4:]
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PatternCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pattern: str = ""
    pattern_type: str = Field(default=MODE_TEMPLATE, alias="patternType")
    case_sensitive: bool = Field(default=False, alias="caseSensitive")
    filenames: list[str] = Field(default_factory=list)


class SubmissionDecodeRequest(BaseModel):
    filenames: list[str] = Field(default_factory=list)


def _error(status_code: int, message: str, warnings: list[str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, "warnings": warnings or []},
    )


def _validation_messages(exc: ValidationError) -> list[str]:
    return [".".join(str(part) for part in error["loc"]) + f": {error['msg']}" for error in exc.errors()]


def _parse_criteria_form(raw: str | None) -> Criteria | JSONResponse:
    if raw is None or not raw.strip():
        return load_default_criteria()[0]
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        return _error(400, f"Criteria is not valid JSON: {exc.msg}.")
    if not isinstance(payload, dict):
        return _error(400, "Criteria must be a JSON object.")
    try:
        return parse_criteria(payload)
    except ValidationError as exc:
        return _error(422, "Invalid criteria.", _validation_messages(exc))


async def _grade_uploads(files: list[UploadFile] | None, criteria_raw: str | None) -> BatchResult | JSONResponse:
    settings = load_settings()
    if not files:
        return _error(400, "No files uploaded.")
    if len(files) > settings.max_files:
        return _error(400, f"Too many files: at most {settings.max_files} per request.")

    criteria = _parse_criteria_form(criteria_raw)
    if isinstance(criteria, JSONResponse):
        return criteria

    uploads: list[RawDocument] = []
    for upload in files:
        content = await upload.read()
        if len(content) > settings.max_upload_bytes:
            return _error(413, f"Upload '{upload.filename}' exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB limit.")
        uploads.append(RawDocument(filename=upload.filename or "", content=content))

    return await run_in_threadpool(process_batch, uploads, criteria, settings, get_decoder())


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/criteria/default")
def default_criteria():
    criteria, source = load_default_criteria()
    return {"status": "success", "source": source, "criteria": criteria.model_dump(by_alias=True)}


@app.post("/process")
async def process_files(
    files: list[UploadFile] | None = File(None),
    criteria: str | None = Form(None),
):
    batch = await _grade_uploads(files, criteria)
    if isinstance(batch, JSONResponse):
        return batch
    return {"status": "success", **batch.to_dict()}


@app.post("/process/csv")
async def process_files_csv(
    files: list[UploadFile] | None = File(None),
    criteria: str | None = Form(None),
    export_format: str = Form("results"),
    assignment_name: str | None = Form(None),
):
    if export_format not in ("results", "gradebook"):
        return _error(400, f"Unknown export format '{export_format}'. Use 'results' or 'gradebook'.")

    batch = await _grade_uploads(files, criteria)
    if isinstance(batch, JSONResponse):
        return batch

    if export_format == "gradebook":
        body = gradebook_csv(batch.results, assignment_name)
        filename = gradebook_filename(assignment_name)
    else:
        body = results_csv(batch.results, load_settings().pass_threshold)
        filename = RESULTS_FILENAME
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/patterns/check")
def check_pattern(request: PatternCheckRequest):
    try:
        validator = compile_filename_pattern(request.pattern, request.pattern_type, request.case_sensitive)
    except ValueError as exc:
        return _error(400, str(exc))

    return {
        "status": "error" if validator.error else "success",
        "mode": validator.mode,
        "pattern": validator.pattern,
        "display": display_pattern(request.pattern, request.pattern_type),
        "example": pattern_example(request.pattern, request.pattern_type),
        "regex": validator.regex_source,
        "error": validator.error,
        "results": [{"filename": name, **validator.match(name).to_dict()} for name in request.filenames],
    }


@app.post("/submissions/decode")
def decode_submissions(request: SubmissionDecodeRequest):
    results = []
    for filename in request.filenames:
        info = decode_submission_filename(filename)
        results.append({"filename": filename, "recognized": info is not None, "submission": info.to_dict() if info else None})
    return {"status": "success", "results": results}
