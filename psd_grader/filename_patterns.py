"""Compile instructor filename patterns into reusable validators.

Four explicit modes are supported: ``exact``, ``contains``, ``regex`` and
``template``. Templates such as ``{CLASS}_{LASTNAME}_{ASSIGNMENT}`` go through a
small compiler: the pattern is tokenized into literal text and placeholder
tokens, literals are regex-escaped, and each placeholder is substituted with its
fragment. The same compiler serves grading and the interactive preview.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache

from psd_grader.config import DOCUMENT_EXTENSION
from psd_grader.errors import PatternCompileError

logger = logging.getLogger(__name__)

MODE_EXACT = "exact"
MODE_CONTAINS = "contains"
MODE_REGEX = "regex"
MODE_TEMPLATE = "template"
PATTERN_MODES = (MODE_EXACT, MODE_CONTAINS, MODE_REGEX, MODE_TEMPLATE)

PRESET_TEMPLATES = {
    "class_name_assignment": "{CLASS}_{LASTNAME}_{ASSIGNMENT}",
    "name_class_assignment": "{LASTNAME}_{CLASS}_{ASSIGNMENT}",
    "assignment_name_class": "{ASSIGNMENT}_{LASTNAME}_{CLASS}",
}
TEMPLATE_ALIASES = {"custom": MODE_TEMPLATE}
PATTERN_TYPES = (*PATTERN_MODES, *TEMPLATE_ALIASES, *PRESET_TEMPLATES)

PLACEHOLDER_FRAGMENTS = {
    "CLASS": r"[A-Za-z]{2,5}[\s-]?\d{2,4}",
    "LASTNAME": r"[A-Za-z-]+",
    "FIRSTNAME": r"[A-Za-z-]+",
    "ASSIGNMENT": r"[A-Za-z]*[\s-]?\d+[A-Za-z]?",
    "NUMBER": r"\d+",
    "ANY": r".+",
}
PLACEHOLDER_EXAMPLES = {
    "CLASS": "DES222",
    "LASTNAME": "Smith",
    "FIRSTNAME": "John",
    "ASSIGNMENT": "A01",
    "NUMBER": "1",
    "ANY": "text",
}
PLACEHOLDER_RE = re.compile(r"\{(" + "|".join(PLACEHOLDER_FRAGMENTS) + r")\}", re.IGNORECASE)
_EXTENSION_RE = re.compile(re.escape(DOCUMENT_EXTENSION) + r"$", re.IGNORECASE)


@dataclass(frozen=True)
class TemplateToken:
    text: str
    placeholder: str | None = None


@dataclass(frozen=True)
class FilenameMatch:
    matched: bool
    candidate: str
    fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"matched": self.matched, "candidate": self.candidate, "fields": dict(self.fields)}


def strip_document_name(filename: str) -> str:
    """Drop any directory part and the document extension."""

    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    return _EXTENSION_RE.sub("", base)


def resolve_pattern_type(pattern: str, pattern_type: str | None) -> tuple[str, str]:
    """Map UI pattern types (presets, ``custom``) onto a mode and a concrete pattern."""

    selected = (pattern_type or MODE_TEMPLATE).strip().lower()
    if selected in PRESET_TEMPLATES:
        return MODE_TEMPLATE, PRESET_TEMPLATES[selected]
    selected = TEMPLATE_ALIASES.get(selected, selected)
    if selected not in PATTERN_MODES:
        raise ValueError(
            f"Unknown pattern type '{pattern_type}'. Supported types: {', '.join(PATTERN_TYPES)}."
        )
    return selected, pattern or ""


def tokenize_template(pattern: str) -> list[TemplateToken]:
    tokens: list[TemplateToken] = []
    position = 0
    for match in PLACEHOLDER_RE.finditer(pattern):
        if match.start() > position:
            tokens.append(TemplateToken(text=pattern[position:match.start()]))
        tokens.append(TemplateToken(text=match.group(0), placeholder=match.group(1).upper()))
        position = match.end()
    if position < len(pattern):
        tokens.append(TemplateToken(text=pattern[position:]))
    return tokens


def template_to_regex(pattern: str, *, named: bool = False) -> str:
    """Build the anchored regex source for a placeholder template.

    With ``named=True`` every placeholder becomes a named group; repeated
    placeholders get ``_2``, ``_3`` suffixes since group names must be unique.
    """

    parts: list[str] = []
    seen: dict[str, int] = {}
    for token in tokenize_template(pattern):
        if token.placeholder is None:
            parts.append(re.escape(token.text))
            continue
        fragment = PLACEHOLDER_FRAGMENTS[token.placeholder]
        if named:
            seen[token.placeholder] = seen.get(token.placeholder, 0) + 1
            count = seen[token.placeholder]
            group_name = token.placeholder if count == 1 else f"{token.placeholder}_{count}"
            parts.append(f"(?P<{group_name}>{fragment})")
        else:
            parts.append(f"({fragment})")
    return "^" + "".join(parts) + "$"


def _compile_regex(source: str, case_sensitive: bool) -> re.Pattern:
    try:
        return re.compile(source, 0 if case_sensitive else re.IGNORECASE)
    except re.error as exc:
        raise PatternCompileError(f"Invalid pattern {source!r}: {exc}") from exc


@dataclass(frozen=True)
class FilenameValidator:
    mode: str
    pattern: str
    case_sensitive: bool = False
    regex: re.Pattern | None = None
    error: str | None = None

    @property
    def regex_source(self) -> str | None:
        return self.regex.pattern if self.regex is not None else None

    def match(self, filename: str) -> FilenameMatch:
        candidate = strip_document_name(filename)

        if self.mode in (MODE_EXACT, MODE_CONTAINS):
            check_name = candidate if self.case_sensitive else candidate.lower()
            check_pattern = self.pattern if self.case_sensitive else self.pattern.lower()
            if self.mode == MODE_EXACT:
                matched = check_name == check_pattern
            else:
                matched = check_pattern in check_name
            return FilenameMatch(matched=matched, candidate=candidate)

        if self.regex is None:
            return FilenameMatch(matched=False, candidate=candidate)

        if self.mode == MODE_REGEX:
            found = self.regex.search(candidate)
        else:
            found = self.regex.match(candidate)
        if found is None:
            return FilenameMatch(matched=False, candidate=candidate)

        fields = {name: value for name, value in found.groupdict().items() if value is not None}
        return FilenameMatch(matched=True, candidate=candidate, fields=fields)

    def matches(self, filename: str) -> bool:
        return self.match(filename).matched


@lru_cache(maxsize=256)
def compile_filename_pattern(pattern: str, pattern_type: str | None = MODE_TEMPLATE, case_sensitive: bool = False) -> FilenameValidator:
    """Compile ``pattern`` once; invalid regexes yield a validator that never matches."""

    mode, resolved = resolve_pattern_type(pattern, pattern_type)

    if mode in (MODE_EXACT, MODE_CONTAINS):
        return FilenameValidator(mode=mode, pattern=resolved, case_sensitive=case_sensitive)

    source = resolved if mode == MODE_REGEX else template_to_regex(resolved, named=True)
    try:
        regex = _compile_regex(source, case_sensitive)
    except PatternCompileError as exc:
        logger.warning("Filename pattern rejected: %s", exc)
        return FilenameValidator(mode=mode, pattern=resolved, case_sensitive=case_sensitive, error=str(exc))

    return FilenameValidator(mode=mode, pattern=resolved, case_sensitive=case_sensitive, regex=regex)


def validate_filename(filename: str, pattern: str, pattern_type: str | None = MODE_TEMPLATE, case_sensitive: bool = False) -> bool:
    return compile_filename_pattern(pattern, pattern_type, case_sensitive).matches(filename)


def display_pattern(pattern: str, pattern_type: str | None = MODE_TEMPLATE) -> str:
    """Render a pattern for reports; template placeholders become ``<NAME>``."""

    mode, resolved = resolve_pattern_type(pattern, pattern_type)
    if mode != MODE_TEMPLATE:
        return resolved
    return PLACEHOLDER_RE.sub(lambda match: f"<{match.group(1).upper()}>", resolved)


def pattern_example(pattern: str, pattern_type: str | None = MODE_TEMPLATE) -> str:
    mode, resolved = resolve_pattern_type(pattern, pattern_type)
    if mode == MODE_EXACT:
        return resolved + DOCUMENT_EXTENSION
    if mode == MODE_CONTAINS:
        return f"MyFile_{resolved}_v1{DOCUMENT_EXTENSION}"
    if mode == MODE_REGEX:
        return "Depends on your regex pattern"
    rendered = PLACEHOLDER_RE.sub(lambda match: PLACEHOLDER_EXAMPLES[match.group(1).upper()], resolved)
    return rendered + DOCUMENT_EXTENSION
