"""Starlette HTTP server assembly for the AAR records service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

from starlette.applications import Starlette
from starlette.datastructures import FormData, UploadFile
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from aar_records.app import AppContext, build_app_context
from aar_records.config import describe_storage_settings
from aar_records.middleware import RequestLoggingMiddleware
from aar_records.objectstore import ObjectStorageError
from aar_records.reports import ReportGenerationError, generate_pdf_async
from aar_records.store import RecordAlreadyExistsError, RecordNotFoundError
from aar_records.submission import SubmissionError, UploadedFile, submit_report

logger = logging.getLogger(__name__)

_SUBMISSION_ERROR_STATUS = {
    "attachment_too_large": 413,
    "duplicate_attachment": 400,
    "invalid_filename": 400,
    "upload_failed": 502,
}

_REPORT_ERROR_STATUS = {
    "converter_missing": 503,
    "timeout": 504,
}

# Upper bound on form parts in a single submission.
_MAX_FORM_FILES = 50
_MAX_FORM_FIELDS = 100


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def content_disposition(filename: str) -> str:
    """Build an attachment ``Content-Disposition`` header value for ``filename``."""
    fallback = "".join(
        ch if ch.isascii() and ch.isprintable() and ch not in '"\\' else "_" for ch in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _text_fields(form: FormData) -> dict[str, str]:
    """Collect the text parts of a form; the first value wins when a name repeats."""
    fields: dict[str, str] = {}
    for key, value in form.multi_items():
        if isinstance(value, str):
            fields.setdefault(key, value)
    return fields


async def _read_uploads(values: list[Any], max_upload_bytes: int) -> list[UploadedFile]:
    uploads: list[UploadedFile] = []
    for value in values:
        # Browsers send an empty, nameless part when no file was chosen.
        if not isinstance(value, UploadFile) or not value.filename:
            continue
        if value.size is not None and value.size > max_upload_bytes:
            raise SubmissionError(
                f"Attachment '{value.filename}' is {value.size} bytes; limit is {max_upload_bytes}",
                code="attachment_too_large",
            )
        uploads.append(
            UploadedFile(
                filename=value.filename,
                content_type=value.content_type or "",
                data=await value.read(),
            )
        )
    return uploads


def create_http_app(context: AppContext | None = None) -> Starlette:
    """Create the HTTP application around ``context`` (built from settings if omitted)."""
    if context is None:
        context = build_app_context()
    settings = context.settings
    store = context.store
    storage = context.storage
    storage_timeout = settings.storage.timeout_seconds

    middleware: list[Middleware] = [
        Middleware(RequestLoggingMiddleware, enabled=settings.logging.request_logging),
    ]
    if settings.server.http_enable_cors and settings.server.http_allowed_origins:
        from starlette.middleware.cors import CORSMiddleware

        middleware.insert(
            0,
            Middleware(
                CORSMiddleware,
                allow_origins=list(settings.server.http_allowed_origins),
                allow_methods=["POST", "GET", "OPTIONS"],
                allow_headers=["Content-Type", "Accept", "X-Request-ID"],
            ),
        )

    async def dashboard_handler(request: Request) -> Response:
        stats = store.get_stats()
        recent = store.get_all()
        return JSONResponse(
            {
                "title": "Dashboard",
                "stats": stats.to_dict(),
                "recent_reports": [record.to_dict() for record in recent],
            }
        )

    async def create_handler(request: Request) -> Response:
        max_upload_bytes = settings.uploads.max_upload_bytes
        try:
            async with request.form(
                max_files=_MAX_FORM_FILES, max_fields=_MAX_FORM_FIELDS
            ) as form:
                fields = _text_fields(form)
                uploads = await _read_uploads(form.getlist("attachments"), max_upload_bytes)
            record = await submit_report(
                fields,
                uploads,
                store=store,
                storage=storage,
                id_generator=context.id_generator,
                max_upload_bytes=max_upload_bytes,
                storage_timeout=storage_timeout,
            )
        except SubmissionError as exc:
            return _error(_SUBMISSION_ERROR_STATUS.get(exc.code, 400), exc.code, str(exc))
        except RecordAlreadyExistsError as exc:
            return _error(409, "already_exists", f"Error saving AAR: {exc}")

        return JSONResponse(
            status_code=201,
            content={"id": record.id, "record": record.to_dict()},
        )

    async def list_handler(request: Request) -> Response:
        operation_name = request.query_params.get("operation_name", "")
        unit = request.query_params.get("unit", "")
        mission_type = request.query_params.get("mission_type", "")

        if operation_name or unit or mission_type:
            records = store.search(operation_name, unit, mission_type)
        else:
            records = store.get_all()

        return JSONResponse(
            {
                "title": "Browse AARs",
                "reports": [record.to_dict() for record in records],
                "search_params": {
                    "operation_name": operation_name,
                    "unit": unit,
                    "mission_type": mission_type,
                },
            }
        )

    async def view_handler(request: Request) -> Response:
        record_id = request.query_params.get("id", "")
        if not record_id:
            return _error(400, "missing_id", "AAR ID is required")
        try:
            record = store.get_by_id(record_id)
        except RecordNotFoundError:
            return _error(404, "not_found", "AAR not found")
        return JSONResponse({"title": record.operation_name, "report": record.to_dict()})

    async def download_handler(request: Request) -> Response:
        record_id = request.query_params.get("id", "")
        filename = request.query_params.get("file", "")
        if not record_id or not filename:
            return _error(400, "missing_parameters", "AAR ID and filename are required")

        try:
            record = store.get_by_id(record_id)
        except RecordNotFoundError:
            return _error(404, "not_found", "AAR not found")

        attachment = record.find_attachment(filename)
        if attachment is None:
            return _error(404, "attachment_not_found", "Attachment not found")

        try:
            obj = await storage.download_async(attachment.s3_key, timeout=storage_timeout)
        except ObjectStorageError as exc:
            logger.warning("Download of %s failed: %s", attachment.s3_key, exc)
            if exc.code == "not_found":
                return _error(404, "attachment_missing", "Attachment is missing from storage")
            return _error(502, exc.code, "Error downloading file")

        headers = {"Content-Disposition": content_disposition(attachment.filename)}
        if obj.content_length is not None:
            headers["Content-Length"] = str(obj.content_length)
        return StreamingResponse(
            obj.iter_chunks(),
            media_type=attachment.content_type or obj.content_type or "application/octet-stream",
            headers=headers,
        )

    async def report_handler(request: Request) -> Response:
        async with request.form(max_files=0, max_fields=_MAX_FORM_FIELDS) as form:
            record_id = str(form.get("aar_id") or "")
        if not record_id:
            return _error(400, "missing_id", "AAR ID is required")

        try:
            record = store.get_by_id(record_id)
        except RecordNotFoundError:
            return _error(404, "not_found", "AAR not found")

        try:
            pdf = await generate_pdf_async(record, settings.reports)
        except ReportGenerationError as exc:
            logger.error("Report generation for %s failed: %s", record.id, exc)
            return _error(_REPORT_ERROR_STATUS.get(exc.code, 500), exc.code, str(exc))

        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": content_disposition(f"AAR_{record.id}_Report.pdf")},
        )

    async def health_handler(request: Request) -> Response:
        return JSONResponse({"status": "healthy"})

    async def ready_handler(request: Request) -> Response:
        return JSONResponse({"status": "ready", "records": store.get_stats().total})

    async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "internal_error", "Internal server error")

    routes = [
        Route("/", endpoint=dashboard_handler, methods=["GET"]),
        Route("/aar/create", endpoint=create_handler, methods=["POST"]),
        Route("/aar/list", endpoint=list_handler, methods=["GET"]),
        Route("/aar/view", endpoint=view_handler, methods=["GET"]),
        Route("/aar/download", endpoint=download_handler, methods=["GET"]),
        Route("/aar/generate-report", endpoint=report_handler, methods=["POST"]),
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/ready", endpoint=ready_handler, methods=["GET"]),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Starting AAR records HTTP server...")
        logger.info("Loaded %d sample AARs", store.get_stats().total)
        for line in describe_storage_settings(settings.storage):
            logger.info("  %s", line)
        if settings.storage.validate_on_startup:
            try:
                await storage.check_bucket_async(timeout=storage_timeout)
            except ObjectStorageError as exc:
                logger.error("Cannot access bucket '%s': %s", storage.bucket, exc)
                raise RuntimeError(
                    f"Object storage validation failed for bucket '{storage.bucket}'"
                ) from exc
            logger.info("S3 bucket connection validated: s3://%s", storage.bucket)
        try:
            yield
        finally:
            logger.info("Stopping AAR records HTTP server...")

    app = Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
        exception_handlers={Exception: unhandled_error_handler},
    )
    app.state.context = context
    return app
