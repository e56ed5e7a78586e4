import base64
import mimetypes
import os
import stat
from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileFailure(str, Enum):
    NOT_FOUND = "not_found"
    NOT_A_FILE = "not_a_file"
    TOO_LARGE = "too_large"
    PERMISSION_DENIED = "permission_denied"
    READ_FAILURE = "read_failure"


@dataclass(frozen=True)
class FileReadResult:
    file_name: str
    size_bytes: int = 0
    mime_type: str = DEFAULT_MIME_TYPE
    base64: str = ""
    failure: Optional[FileFailure] = None
    # Human-readable cause, for logs only; never sent to the client.
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


def guess_mime_type(file_name: str) -> str:
    mime_type, _ = mimetypes.guess_type(file_name, strict=False)
    return mime_type or DEFAULT_MIME_TYPE


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _failure_from_os_error(exc: OSError) -> FileFailure:
    if isinstance(exc, (FileNotFoundError, NotADirectoryError)):
        return FileFailure.NOT_FOUND
    if isinstance(exc, PermissionError):
        return FileFailure.PERMISSION_DENIED
    return FileFailure.READ_FAILURE


def read_file_base64(path: str, max_size_bytes: int) -> FileReadResult:
    """
    Stat, size-check, read and base64-encode one approved path.

    Blocking; callers on the event loop should push this onto a worker
    thread. Every filesystem error is folded into a ``FileFailure`` so the
    caller only ever sees a result value.
    """
    file_name = os.path.basename(path)

    def failed(failure: FileFailure, detail: str, size: int = 0) -> FileReadResult:
        return FileReadResult(
            file_name=file_name, size_bytes=size, failure=failure, detail=detail
        )

    try:
        st = os.stat(path)
    except OSError as e:
        return failed(_failure_from_os_error(e), f"stat failed: {e}")
    except ValueError as e:
        return failed(FileFailure.READ_FAILURE, f"stat failed: {e}")

    if not stat.S_ISREG(st.st_mode):
        return failed(FileFailure.NOT_A_FILE, "not a regular file")

    if st.st_size > max_size_bytes:
        return failed(
            FileFailure.TOO_LARGE,
            f"file size ({st.st_size} bytes) exceeds maximum allowed ({max_size_bytes} bytes)",
            size=st.st_size,
        )

    try:
        data = _read_bytes(path)
    except OSError as e:
        return failed(_failure_from_os_error(e), f"read failed: {e}", size=st.st_size)

    try:
        encoded = base64.b64encode(data).decode("ascii")
    except (TypeError, ValueError) as e:
        return failed(FileFailure.READ_FAILURE, f"encode failed: {e}", size=st.st_size)

    return FileReadResult(
        file_name=file_name,
        size_bytes=st.st_size,
        mime_type=guess_mime_type(file_name),
        base64=encoded,
    )
