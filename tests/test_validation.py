from __future__ import annotations

from nyaa_downloader.validation import validate_config_data, validate_download_list


def test_valid_config_passes() -> None:
    report = validate_config_data(
        {
            "settings": {"download_dir": "/media", "nyaa_url": "https://nyaa.si", "batch_size": 6},
            "email": {"smtp": {"host": "smtp.example.com", "port": 587}, "to": ["me@example.com"]},
        }
    )

    assert report.is_valid
    assert report.warnings == []


def test_config_schema_errors_report_paths() -> None:
    report = validate_config_data({"settings": {"nyaa_url": "ftp://nyaa.si", "batch_size": 0}})

    assert not report.is_valid
    assert {issue.path for issue in report.errors} == {"settings.batch_size", "settings.nyaa_url"}


def test_smtp_without_recipients_warns() -> None:
    report = validate_config_data({"email": {"smtp": {"host": "smtp.example.com"}}})

    assert report.is_valid
    assert [issue.code for issue in report.warnings] == ["email-recipients"]


def test_download_list_requires_folder_and_query() -> None:
    report = validate_download_list({"Anime": [{"folder": "Show"}]})

    assert not report.is_valid
    assert report.errors[0].path == "Anime[0]"
    assert "query" in report.errors[0].message


def test_download_list_flags_duplicate_folders() -> None:
    report = validate_download_list(
        {"Anime": [{"folder": "Show", "query": "a"}, {"folder": "Show", "query": "b"}]}
    )

    assert [issue.code for issue in report.errors] == ["duplicate-folder"]
    assert report.errors[0].path == "Anime[1].folder"


def test_download_list_warns_about_unusable_patterns() -> None:
    report = validate_download_list(
        {
            "Anime": [
                {"folder": "Show", "query": "a", "pattern": "Episode (\\d+)"},
                {"folder": "Other", "query": "b", "pattern": "(\\d+)x(\\d+)"},
            ]
        }
    )

    assert report.is_valid
    assert [(issue.path, issue.code) for issue in report.warnings] == [("Anime[0].pattern", "pattern")]


def test_download_list_must_be_a_mapping() -> None:
    report = validate_download_list(["Show"])

    assert not report.is_valid
    assert report.errors[0].path == "<root>"
