from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass

from psd_grader.config import DEFAULT_PASS_THRESHOLD
from psd_grader.scoring import GradingResult, round_half_up


@dataclass(frozen=True)
class BatchSummary:
    total_files: int
    average_score: int
    passed_count: int
    failed_count: int
    late_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def summarize(results: Sequence[GradingResult], pass_threshold: int = DEFAULT_PASS_THRESHOLD) -> BatchSummary:
    """Fold per-file results into batch statistics.

    Only results with a non-zero ``max_score`` are graded: they alone feed the
    average and the pass/fail counts. ``average_score`` is the pooled
    percentage ``100 * sum(score) / sum(max_score)``.
    """

    graded = [result for result in results if result.max_score > 0]
    total_score = sum(result.score for result in graded)
    total_max = sum(result.max_score for result in graded)
    passed = sum(1 for result in graded if 100 * result.score / result.max_score >= pass_threshold)

    return BatchSummary(
        total_files=len(results),
        average_score=round_half_up(100 * total_score / total_max) if total_max else 0,
        passed_count=passed,
        failed_count=len(graded) - passed,
        late_count=sum(1 for result in results if result.is_late),
        error_count=sum(1 for result in results if result.error),
    )
