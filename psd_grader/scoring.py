"""Rule-based scoring of an analyzed document against instructor criteria.

Rules run in a fixed declaration order. A rule that is disabled, or whose target
is left empty, is excluded: it adds nothing to ``score`` and nothing to
``max_score``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from psd_grader.criteria import Criteria, FilenameCriteria, FontCriteria, TechnicalCriteria
from psd_grader.document_parser import AnalysisResult
from psd_grader.filename_patterns import compile_filename_pattern, display_pattern
from psd_grader.submission import SubmissionInfo

logger = logging.getLogger(__name__)

RULE_FILENAME = "Filename"
RULE_WIDTH = "Width"
RULE_HEIGHT = "Height"
RULE_COLOR_MODE = "Color Mode"
RULE_MIN_LAYERS = "Minimum Layers"
RULE_REQUIRED_LAYERS = "Required Layers"
RULE_RESOLUTION = "Resolution"
RULE_FONTS = "Fonts"
RULE_ORDER = (
    RULE_FILENAME,
    RULE_WIDTH,
    RULE_HEIGHT,
    RULE_COLOR_MODE,
    RULE_MIN_LAYERS,
    RULE_REQUIRED_LAYERS,
    RULE_RESOLUTION,
    RULE_FONTS,
)

LETTER_GRADES = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D+"),
    (63, "D"),
    (60, "D-"),
)


@dataclass(frozen=True)
class CriterionCheck:
    rule_name: str
    expected: Any
    actual: Any
    passed: bool
    points_awarded: int
    points_possible: int
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "rule_name": self.rule_name,
            "expected": self.expected,
            "actual": self.actual,
            "passed": self.passed,
            "points_awarded": self.points_awarded,
            "points_possible": self.points_possible,
            "details": self.details,
        }


@dataclass(frozen=True)
class GradingResult:
    filename: str
    score: int
    max_score: int
    percentage: int
    checks: tuple[CriterionCheck, ...] = ()
    analysis: AnalysisResult | None = None
    submission: SubmissionInfo | None = None
    student_name: str | None = None
    source_archive: str | None = None
    error: str | None = None

    @property
    def display_name(self) -> str:
        if self.submission is not None:
            return self.submission.display_name
        return self.filename

    @property
    def letter_grade(self) -> str:
        return letter_grade(self.percentage)

    @property
    def is_late(self) -> bool:
        return self.submission is not None and self.submission.is_late

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "display_name": self.display_name,
            "student_name": self.student_name,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "letter_grade": self.letter_grade,
            "is_late": self.is_late,
            "checks": [check.to_dict() for check in self.checks],
            "analysis": self.analysis.to_dict() if self.analysis is not None else None,
            "submission": self.submission.to_dict() if self.submission is not None else None,
            "source_archive": self.source_archive,
            "error": self.error,
        }


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage_of(score: int, max_score: int) -> int:
    if max_score <= 0:
        return 0
    return round_half_up(100 * score / max_score)


def letter_grade(percentage: float) -> str:
    for threshold, grade in LETTER_GRADES:
        if percentage >= threshold:
            return grade
    return "F"


def _check(rule_name: str, expected: Any, actual: Any, passed: bool, points: int, **details: Any) -> CriterionCheck:
    return CriterionCheck(
        rule_name=rule_name,
        expected=expected,
        actual=actual,
        passed=passed,
        points_awarded=points if passed else 0,
        points_possible=points,
        details=details,
    )


def _filename_check(rules: FilenameCriteria, analysis: AnalysisResult, *, checked_name: str) -> CriterionCheck:
    validator = compile_filename_pattern(rules.pattern, rules.pattern_type, rules.case_sensitive)
    match = validator.match(checked_name)
    details: dict = {"checked_filename": checked_name, "fields": match.fields}
    if validator.error:
        details["pattern_error"] = validator.error
    if not match.matched:
        details["message"] = "Incorrect"
    return _check(
        RULE_FILENAME,
        display_pattern(rules.pattern, rules.pattern_type),
        match.candidate,
        match.matched,
        rules.points,
        **details,
    )


def _width_check(rules: TechnicalCriteria, analysis: AnalysisResult) -> CriterionCheck:
    return _check(RULE_WIDTH, rules.width, analysis.width, analysis.width == rules.width, rules.points_per_criterion)


def _height_check(rules: TechnicalCriteria, analysis: AnalysisResult) -> CriterionCheck:
    return _check(RULE_HEIGHT, rules.height, analysis.height, analysis.height == rules.height, rules.points_per_criterion)


def _color_mode_check(rules: TechnicalCriteria, analysis: AnalysisResult) -> CriterionCheck:
    expected = rules.color_mode.strip()
    return _check(
        RULE_COLOR_MODE,
        expected,
        analysis.color_mode,
        analysis.color_mode == expected,
        rules.points_per_criterion,
    )


def _min_layers_check(rules: TechnicalCriteria, analysis: AnalysisResult) -> CriterionCheck:
    return _check(
        RULE_MIN_LAYERS,
        rules.min_layers,
        analysis.layer_count,
        analysis.layer_count >= rules.min_layers,
        rules.points_per_criterion,
    )


def _required_layers_check(rules: TechnicalCriteria, analysis: AnalysisResult) -> CriterionCheck:
    layer_names = analysis.layer_names
    found_details = []
    for required in rules.required_layers:
        needle = required.lower()
        actual_match = next((name for name in layer_names if needle in name.lower()), None)
        found_details.append({"name": required, "found": actual_match is not None, "actual_match": actual_match})

    found_count = sum(1 for item in found_details if item["found"])
    required_count = len(found_details)
    points = rules.points_per_criterion
    passed = found_count == required_count

    awarded = points if passed else 0
    if rules.required_layers_partial_credit:
        awarded = round_half_up(points * found_count / required_count)

    return CriterionCheck(
        rule_name=RULE_REQUIRED_LAYERS,
        expected=list(rules.required_layers),
        actual=[item["actual_match"] for item in found_details if item["found"]],
        passed=passed,
        points_awarded=awarded,
        points_possible=points,
        details={"layers": found_details, "found_count": found_count, "required_count": required_count},
    )


def _resolution_check(rules: TechnicalCriteria, analysis: AnalysisResult) -> CriterionCheck:
    return _check(
        RULE_RESOLUTION,
        rules.resolution,
        analysis.resolution,
        analysis.resolution >= rules.resolution,
        rules.points_per_criterion,
    )


def _font_approved(font: str, approved: list[str]) -> bool:
    font_lower = font.lower()
    return any(entry in font_lower or font_lower in entry for entry in approved)


def _fonts_check(rules: FontCriteria, analysis: AnalysisResult) -> CriterionCheck:
    used_fonts = analysis.fonts_used
    expected = {"approved_fonts": list(rules.approved_fonts), "required_fonts": list(rules.required_fonts)}

    if not used_fonts:
        return _check(RULE_FONTS, expected, [], True, rules.points_per_criterion, has_no_fonts=True, violations=[], font_details=[])

    approved = [font.lower() for font in rules.approved_fonts]
    violations: list[str] = []
    font_details = []
    for font in used_fonts:
        is_approved = not approved or _font_approved(font, approved)
        font_details.append({"name": font, "approved": is_approved})
        if not is_approved:
            violations.append(f"Unapproved font: {font}")

    lowered = [font.lower() for font in used_fonts]
    for required in rules.required_fonts:
        if not any(required.lower() in font for font in lowered):
            violations.append(f"Missing required font: {required}")

    return _check(
        RULE_FONTS,
        expected,
        used_fonts,
        not violations,
        rules.points_per_criterion,
        has_no_fonts=False,
        violations=violations,
        font_details=font_details,
    )


def _configured(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple)):
        return bool(value)
    return value != 0


def _active_rules(criteria: Criteria, checked_name: str = "") -> list[tuple[str, int, Callable[[AnalysisResult], CriterionCheck]]]:
    """Enabled, configured rules in declaration order, with their possible points."""

    active: list[tuple[str, int, Callable[[AnalysisResult], CriterionCheck]]] = []
    filename_rules = criteria.filename
    if filename_rules.enabled and filename_rules.is_configured:
        active.append((RULE_FILENAME, filename_rules.points, partial(_filename_check, filename_rules, checked_name=checked_name)))

    technical = criteria.technical
    if technical.enabled:
        points = technical.points_per_criterion
        for rule_name, target, evaluate in (
            (RULE_WIDTH, technical.width, _width_check),
            (RULE_HEIGHT, technical.height, _height_check),
            (RULE_COLOR_MODE, technical.color_mode, _color_mode_check),
            (RULE_MIN_LAYERS, technical.min_layers, _min_layers_check),
            (RULE_REQUIRED_LAYERS, technical.required_layers, _required_layers_check),
            (RULE_RESOLUTION, technical.resolution, _resolution_check),
        ):
            if _configured(target):
                active.append((rule_name, points, partial(evaluate, technical)))

    if criteria.fonts.enabled and criteria.fonts.is_configured:
        active.append((RULE_FONTS, criteria.fonts.points_per_criterion, partial(_fonts_check, criteria.fonts)))
    return active


def compute_max_score(criteria: Criteria) -> int:
    return sum(points for _, points, _ in _active_rules(criteria))


def resolve_student_name(submission: SubmissionInfo | None, checks: tuple[CriterionCheck, ...] = ()) -> str | None:
    if submission is not None and submission.last_name_guess:
        return submission.last_name_guess
    for check in checks:
        if check.rule_name == RULE_FILENAME:
            lastname = check.details.get("fields", {}).get("LASTNAME")
            if lastname:
                return lastname
    return None


def grade_analysis(
    analysis: AnalysisResult,
    criteria: Criteria,
    filename: str | None = None,
    submission: SubmissionInfo | None = None,
    source_archive: str | None = None,
) -> GradingResult:
    """Score one analyzed document.

    The filename rule checks the student's original name when the upload was
    decoded as an LMS submission.
    """

    filename = filename or analysis.filename
    checked_name = submission.checked_filename if submission is not None else filename

    checks = [evaluate(analysis) for _, _, evaluate in _active_rules(criteria, checked_name)]

    score = sum(check.points_awarded for check in checks)
    max_score = sum(check.points_possible for check in checks)
    logger.debug("Scored %s: %s/%s", filename, score, max_score)
    return GradingResult(
        filename=filename,
        score=score,
        max_score=max_score,
        percentage=percentage_of(score, max_score),
        checks=tuple(checks),
        analysis=analysis,
        submission=submission,
        student_name=resolve_student_name(submission, tuple(checks)),
        source_archive=source_archive,
    )


def error_result(
    filename: str,
    error: str,
    criteria: Criteria,
    submission: SubmissionInfo | None = None,
    source_archive: str | None = None,
) -> GradingResult:
    return GradingResult(
        filename=filename,
        score=0,
        max_score=compute_max_score(criteria),
        percentage=0,
        submission=submission,
        student_name=resolve_student_name(submission),
        source_archive=source_archive,
        error=error,
    )
