import os
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

if TYPE_CHECKING:
    from filebridge.config import Settings


class RejectReason(str, Enum):
    MISSING_INPUT = "missing_input"
    TRAVERSAL_DETECTED = "traversal_detected"
    NOT_IN_ALLOWED_ROOT = "not_in_allowed_root"
    INVALID_FORMAT = "invalid_format"


@dataclass(frozen=True)
class PathVerdict:
    raw: Optional[str]
    path: Optional[str] = None
    reason: Optional[RejectReason] = None

    @property
    def approved(self) -> bool:
        return self.reason is None

    @classmethod
    def approve(cls, raw: str, path: str) -> "PathVerdict":
        return cls(raw=raw, path=path)

    @classmethod
    def reject(
        cls, raw: Optional[str], reason: RejectReason, path: Optional[str] = None
    ) -> "PathVerdict":
        return cls(raw=raw, path=path, reason=reason)


def canonical_path(path: str) -> str:
    """
    Comparable form of an absolute path.

    Roots and candidate paths both go through here so that separator style
    and case are folded the same way on every platform.
    """
    return os.path.normpath(path).casefold()


def contains_traversal(raw_path: str) -> bool:
    segments = raw_path.replace("\\", "/").split("/")
    return any(segment == ".." for segment in segments)


def resolve_path(raw_path: str, base_dir: str) -> str:
    """
    Turn a client path into an absolute, OS-native path.

    Absolute input is normalized as-is. Anything else is joined onto
    ``base_dir`` (never onto an allowed root). Raises ``ValueError`` for
    input that cannot name a file.
    """
    if "\x00" in raw_path:
        raise ValueError("embedded null character")
    if os.path.isabs(raw_path):
        return os.path.abspath(raw_path)
    return os.path.abspath(os.path.join(base_dir, raw_path))


def _parts(path: str) -> Tuple[str, ...]:
    return PurePath(path).parts


def is_within_roots(path: str, roots: Iterable[str]) -> bool:
    """
    True when ``path`` is a proper descendant of one of ``roots``.

    Comparison is per path segment: root ``/data`` does not contain
    ``/data2/file``, and a root never contains itself.
    """
    candidate = _parts(canonical_path(path))
    for root in roots:
        root_parts = _parts(canonical_path(root))
        if len(candidate) > len(root_parts) and candidate[: len(root_parts)] == root_parts:
            return True
    return False


def evaluate(raw_path: Optional[str], settings: "Settings") -> PathVerdict:
    """
    Decide whether a client-supplied path may be read.

    Pure string work: the filesystem is never consulted, so symlinks are not
    followed here. Traversal is checked on the raw string before resolution,
    since resolving would silently collapse ``..`` segments.
    """
    if not raw_path:
        return PathVerdict.reject(raw_path, RejectReason.MISSING_INPUT)

    if contains_traversal(raw_path):
        return PathVerdict.reject(raw_path, RejectReason.TRAVERSAL_DETECTED)

    try:
        absolute_path = resolve_path(raw_path, str(settings.base_dir))
    except (TypeError, ValueError):
        return PathVerdict.reject(raw_path, RejectReason.INVALID_FORMAT)

    if not is_within_roots(absolute_path, settings.allowed_roots):
        return PathVerdict.reject(
            raw_path, RejectReason.NOT_IN_ALLOWED_ROOT, path=absolute_path
        )

    return PathVerdict.approve(raw_path, absolute_path)
