from __future__ import annotations


class GraderError(Exception):
    """Base class for every error raised by the grading engine."""


class HeaderError(GraderError):
    pass


class TooSmallError(HeaderError):
    pass


class InvalidSignatureError(HeaderError):
    pass


class InvalidHeaderError(HeaderError):
    pass


class DecodeLadderExhaustedError(GraderError):
    def __init__(self, notes: list[str]):
        self.notes = list(notes)
        super().__init__("All decode strategies failed: " + "; ".join(self.notes))


class ParseError(GraderError):
    def __init__(self, message: str, notes: list[str] | None = None):
        self.notes = list(notes or [])
        super().__init__(message)


class PatternCompileError(GraderError):
    pass


class ArchiveError(GraderError):
    pass
