import logging
from typing import Dict, Optional, Tuple

from fastapi import APIRouter, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from filebridge.config import Settings
from filebridge.models import ErrorResponse, FileBase64Response
from filebridge.services import path_guard
from filebridge.services.file_reader import FileFailure, read_file_base64
from filebridge.services.path_guard import RejectReason

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

READ_FAILURE_MESSAGE = "Failed to read or encode file."

REJECTIONS: Dict[RejectReason, Tuple[int, str]] = {
    RejectReason.MISSING_INPUT: (400, 'Missing "path" query parameter.'),
    RejectReason.INVALID_FORMAT: (400, "Invalid path format: {raw}"),
    RejectReason.TRAVERSAL_DETECTED: (403, "Path traversal attempts are not allowed."),
    RejectReason.NOT_IN_ALLOWED_ROOT: (403, "Access to the specified path is not allowed."),
}

FAILURES: Dict[FileFailure, Tuple[int, str]] = {
    FileFailure.TOO_LARGE: (400, "File size exceeds maximum allowed ({max_mb}MB)."),
    FileFailure.PERMISSION_DENIED: (403, "Permission denied to read the file."),
    FileFailure.NOT_FOUND: (404, "File not found."),
    FileFailure.NOT_A_FILE: (404, "The specified path is not a file."),
    FileFailure.READ_FAILURE: (500, READ_FAILURE_MESSAGE),
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get(
    "/base64",
    response_model=FileBase64Response,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def get_file_base64(
    request: Request,
    path: Optional[str] = Query(None, description="Path of the file to read"),
):
    """
    Return a file's contents base64-encoded.

    The path must resolve inside one of the configured allowed roots and must
    not contain any ``..`` segment.
    """
    settings = get_settings(request)

    verdict = path_guard.evaluate(path, settings)
    if not verdict.approved:
        status_code, template = REJECTIONS[verdict.reason]
        if verdict.reason is RejectReason.NOT_IN_ALLOWED_ROOT:
            logger.warning(
                "%d - Path not allowed by configuration: %s (allowed roots: %s)",
                status_code,
                verdict.path,
                list(settings.allowed_roots),
            )
        else:
            logger.warning("%d - Rejected path %r: %s", status_code, path, verdict.reason.value)
        return _error(status_code, template.format(raw=path))

    result = await run_in_threadpool(
        read_file_base64, verdict.path, settings.max_file_size_bytes
    )
    if not result.ok:
        status_code, template = FAILURES[result.failure]
        log = logger.error if status_code >= 500 else logger.warning
        log("%d - %s: %s (%s)", status_code, result.failure.value, verdict.path, result.detail)
        return _error(status_code, template.format(max_mb=settings.max_file_size_mb))

    return FileBase64Response(
        file_name=result.file_name,
        size_bytes=result.size_bytes,
        mime_type=result.mime_type,
        base64=result.base64,
    )
