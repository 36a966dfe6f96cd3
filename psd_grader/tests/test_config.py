import json

from psd_grader.config import DEFAULT_CRITERIA_PATH, DEFAULT_MAX_FILES, load_default_criteria_payload, load_settings
from psd_grader.criteria import load_default_criteria


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("GRADER_MAX_UPLOAD_MB", "10")
    monkeypatch.setenv("GRADER_MAX_FILES", "5")
    monkeypatch.setenv("GRADER_DECODE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("GRADER_MAX_WORKERS", "8")
    monkeypatch.setenv("GRADER_PASS_THRESHOLD", "60")
    monkeypatch.setenv("GRADER_LOG_LEVEL", "debug")
    monkeypatch.setenv("GRADER_CORS_ALLOWED_ORIGINS", "https://a.example, ,https://b.example")

    settings = load_settings()

    assert settings.max_upload_bytes == 10 * 1024 * 1024
    assert settings.max_files == 5
    assert settings.decode_timeout_seconds == 2.5
    assert settings.max_workers == 8
    assert settings.pass_threshold == 60
    assert settings.log_level == "DEBUG"
    assert settings.cors_allowed_origins == ["https://a.example", "https://b.example"]


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("GRADER_MAX_FILES", "lots")
    monkeypatch.setenv("GRADER_DECODE_TIMEOUT_SECONDS", "-1")

    settings = load_settings()

    assert settings.max_files == DEFAULT_MAX_FILES
    assert settings.decode_timeout_seconds == 30.0


def test_default_criteria_loader_uses_configured_file(tmp_path, monkeypatch):
    criteria_path = tmp_path / "criteria.json"
    criteria_path.write_text(
        json.dumps({"technical": {"enabled": True, "width": 1080, "colorMode": "RGB"}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("GRADER_DEFAULT_CRITERIA_PATH", str(criteria_path))

    criteria, source = load_default_criteria()

    assert source == str(criteria_path)
    assert criteria.technical.width == 1080
    assert criteria.technical.color_mode == "RGB"


def test_bundled_criteria_found_from_any_working_directory(tmp_path, monkeypatch):
    monkeypatch.delenv("GRADER_DEFAULT_CRITERIA_PATH", raising=False)
    monkeypatch.chdir(tmp_path)

    criteria, source = load_default_criteria()

    assert source == str(DEFAULT_CRITERIA_PATH)
    assert criteria.technical.enabled is True
    assert criteria.technical.width == 1920


def test_missing_or_invalid_criteria_file_falls_back(tmp_path):
    assert load_default_criteria_payload(str(tmp_path / "missing.json")) == ({}, "default")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_default_criteria_payload(str(broken)) == ({}, "default")

    wrong_shape = tmp_path / "wrong.json"
    wrong_shape.write_text(json.dumps({"technical": {"width": "wide"}}), encoding="utf-8")
    criteria, source = load_default_criteria(str(wrong_shape))
    assert source == "default"
    assert criteria.technical.enabled is False
