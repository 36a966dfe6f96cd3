from __future__ import annotations

import re
from dataclasses import asdict, dataclass

from psd_grader.config import ARCHIVE_EXTENSION, DOCUMENT_EXTENSION

LATE_MARKER = "LATE"
MIN_SEGMENTS = 5
_EXTENSION_RE = re.compile(
    "(" + re.escape(DOCUMENT_EXTENSION) + "|" + re.escape(ARCHIVE_EXTENSION) + ")$",
    re.IGNORECASE,
)
_NAME_TOKEN_RE = re.compile(r"^([a-z]+)([A-Z][A-Za-z'-]*)$")


@dataclass(frozen=True)
class SubmissionInfo:
    """Metadata encoded by Canvas in a bulk-downloaded submission filename.

    Canvas names files ``<name>[_LATE]_<userId>_<submissionId>_<original>``
    where ``<name>`` is the student's sortable name squashed together, e.g.
    ``johnSmith`` or ``doe``.
    """

    student_name_token: str
    first_name_guess: str
    last_name_guess: str
    user_id: str
    submission_id: str
    original_filename: str
    is_late: bool = False

    @property
    def submission_status(self) -> str:
        return "late" if self.is_late else "on_time"

    @property
    def display_name(self) -> str:
        return f"{self.last_name_guess} - {self.original_filename}"

    @property
    def checked_filename(self) -> str:
        """The name the student gave the file, as checked by the filename rule."""

        return self.original_filename + DOCUMENT_EXTENSION

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["submission_status"] = self.submission_status
        payload["display_name"] = self.display_name
        return payload


def split_name_token(token: str) -> tuple[str, str]:
    """Return ``(first, last)`` guesses for a Canvas name token."""

    match = _NAME_TOKEN_RE.match(token)
    if match is None:
        return "", token
    return match.group(1), match.group(2)


def decode_submission_filename(filename: str) -> SubmissionInfo | None:
    """Decode an LMS submission filename, or return ``None`` if it is not one.

    User and submission ids must be numeric; ordinary underscore-heavy names
    such as ``DES222_Smith_A01_final_v2.psd`` are left alone.
    """

    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    stem = _EXTENSION_RE.sub("", base)
    parts = stem.split("_")
    if len(parts) < MIN_SEGMENTS:
        return None

    name_token = parts[0]
    is_late = parts[1] == LATE_MARKER
    offset = 2 if is_late else 1
    if len(parts) < offset + 3:
        return None

    user_id = parts[offset]
    submission_id = parts[offset + 1]
    original = "_".join(parts[offset + 2:])
    if not name_token or not user_id.isdigit() or not submission_id.isdigit() or not original:
        return None

    first_name, last_name = split_name_token(name_token)
    return SubmissionInfo(
        student_name_token=name_token,
        first_name_guess=first_name,
        last_name_guess=last_name,
        user_id=user_id,
        submission_id=submission_id,
        original_filename=original,
        is_late=is_late,
    )
