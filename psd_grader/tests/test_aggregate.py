from psd_grader.aggregate import summarize
from psd_grader.scoring import GradingResult
from psd_grader.submission import decode_submission_filename


def _result(score, max_score, filename="a.psd", error=None, submission=None):
    percentage = round(100 * score / max_score) if max_score else 0
    return GradingResult(
        filename=filename,
        score=score,
        max_score=max_score,
        percentage=percentage,
        error=error,
        submission=submission,
    )


def test_summary_pools_scores_and_counts_pass_fail():
    results = [_result(90, 100), _result(70, 100), _result(10, 50)]

    summary = summarize(results)

    assert summary.total_files == 3
    assert summary.average_score == 68
    assert summary.passed_count == 2
    assert summary.failed_count == 1


def test_ungraded_results_are_left_out_of_average_and_counts():
    results = [_result(0, 0), _result(40, 40)]

    summary = summarize(results)

    assert summary.total_files == 2
    assert summary.average_score == 100
    assert summary.passed_count == 1
    assert summary.failed_count == 0


def test_late_and_error_counts():
    late = decode_submission_filename("johnSmith_LATE_1_2_Poster.psd")
    results = [
        _result(20, 20, submission=late),
        _result(0, 20, filename="broken.psd", error="Unable to analyze PSD file"),
    ]

    summary = summarize(results, pass_threshold=80)

    assert summary.late_count == 1
    assert summary.error_count == 1
    assert summary.passed_count == 1
    assert summary.failed_count == 1


def test_empty_batch():
    summary = summarize([])

    assert summary.to_dict() == {
        "total_files": 0,
        "average_score": 0,
        "passed_count": 0,
        "failed_count": 0,
        "late_count": 0,
        "error_count": 0,
    }
