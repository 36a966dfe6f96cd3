import csv
import io

from psd_grader.export import gradebook_csv, gradebook_filename, results_csv
from psd_grader.scoring import GradingResult
from psd_grader.submission import decode_submission_filename


def _rows(text):
    return list(csv.reader(io.StringIO(text)))


def test_results_sheet():
    results = [
        GradingResult(filename="DES222_Smith_A01.psd", score=27, max_score=30, percentage=90),
        GradingResult(filename="broken.psd", score=0, max_score=30, percentage=0, error="Unable to analyze PSD file"),
    ]

    rows = _rows(results_csv(results))

    assert rows[0] == ["Filename", "Score", "Percentage", "Letter Grade", "Status"]
    assert rows[1] == ["DES222_Smith_A01.psd", "27", "90%", "A-", "Pass"]
    assert rows[2] == ["broken.psd", "0", "0%", "F", "Needs Review"]


def test_results_sheet_quotes_every_cell():
    text = results_csv([GradingResult(filename="a.psd", score=1, max_score=1, percentage=100)])

    assert text.splitlines()[1] == '"a.psd","1","100%","A+","Pass"'


def test_gradebook_uses_lms_ids_when_available():
    submission = decode_submission_filename("johnSmith_12345_67890_Poster.psd")
    results = [
        GradingResult(filename="johnSmith_12345_67890_Poster.psd", score=18, max_score=20, percentage=90, submission=submission),
        GradingResult(filename="DES222_Nguyen_A01.psd", score=10, max_score=20, percentage=50, student_name="Nguyen"),
        GradingResult(filename="untitled.psd", score=0, max_score=20, percentage=0),
    ]

    rows = _rows(gradebook_csv(results, "Poster Project"))

    assert rows[0] == ["Student", "ID", "SIS User ID", "SIS Login ID", "Poster Project"]
    assert rows[1] == ["johnSmith", "12345", "", "", "90"]
    assert rows[2] == ["Nguyen", "", "", "", "50"]
    assert rows[3] == ["untitled", "", "", "", "0"]


def test_gradebook_filename():
    assert gradebook_filename("Poster  Project 2") == "canvas_import_poster_project_2.csv"
    assert gradebook_filename(None) == "canvas_import_assignment.csv"
    assert gradebook_filename("   ") == "canvas_import_assignment.csv"
