from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from nyaa_downloader import cli
from nyaa_downloader.config import AppConfig, Settings


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def _config() -> AppConfig:
    return AppConfig(settings=Settings(download_dir=Path("/data/media"), download_list=Path("/config/list.json")))


def test_parse_args_defaults_to_run(monkeypatch) -> None:
    monkeypatch.delenv("CONFIG_PATH", raising=False)

    args = cli.parse_args(("--dry-run",))

    assert args.command == "run"
    assert args.dry_run is True
    assert args.config == Path(cli.DEFAULT_CONFIG_PATH)


def test_parse_args_validate_subcommand() -> None:
    args = cli.parse_args(("validate-config", "--config", "custom.yaml"))

    assert args.command == "validate-config"
    assert args.config == Path("custom.yaml")


def test_runtime_overrides_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("DOWNLOAD_DIR", "/srv/anime")
    monkeypatch.setenv("NYAA_URL", "https://mirror.example/")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("SMTP_SECURE", "true")
    monkeypatch.setenv("RECIPIENT_EMAIL", "a@example.com, b@example.com")
    monkeypatch.setenv("FROM_EMAIL", "bot@example.com")
    monkeypatch.setenv("DRY_RUN", "yes")
    config = _config()

    cli.apply_runtime_overrides(config, cli.parse_args(()))

    assert config.settings.download_dir == Path("/srv/anime")
    assert config.settings.nyaa_url == "https://mirror.example"
    assert config.settings.dry_run is True
    assert config.email.host == "smtp.example.com"
    assert config.email.port == 2525
    assert config.email.secure is True
    assert config.email.recipients == ["a@example.com", "b@example.com"]
    assert config.email.sender == "bot@example.com"


def test_invalid_smtp_port_is_ignored(monkeypatch) -> None:
    monkeypatch.setenv("SMTP_PORT", "not-a-port")
    config = _config()

    cli.apply_runtime_overrides(config, cli.parse_args(()))

    assert config.email.port == 587


def test_configure_logging_rotates_previous_log(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PLAIN_CONSOLE_LOGS", "1")
    log_file = tmp_path / "nyaa.log"
    log_file.write_text("previous run\n", encoding="utf-8")

    cli.configure_logging("INFO", log_file)

    previous = tmp_path / "nyaa.log.previous"
    assert previous.read_text(encoding="utf-8") == "previous run\n"
    assert log_file.exists()


def test_main_fails_without_config(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PLAIN_CONSOLE_LOGS", "1")

    code = cli.main(("--config", str(tmp_path / "missing.yaml"), "--log-file", str(tmp_path / "nyaa.log")))

    assert code == 1


def test_validate_config_checks_download_list(tmp_path) -> None:
    list_path = tmp_path / "list.json"
    list_path.write_text(json.dumps({"Anime": [{"folder": "Show", "query": "show"}]}), encoding="utf-8")
    config_path = tmp_path / "nyaa.yaml"
    config_path.write_text(f"settings:\n  download_list: {list_path}\n", encoding="utf-8")

    assert cli.main(("validate-config", "--config", str(config_path))) == 0

    list_path.write_text(json.dumps({"Anime": [{"folder": "Show"}]}), encoding="utf-8")
    assert cli.main(("validate-config", "--config", str(config_path))) == 1


def test_validate_config_reports_schema_errors(tmp_path) -> None:
    config_path = tmp_path / "nyaa.yaml"
    config_path.write_text("settings:\n  batch_size: 0\n", encoding="utf-8")

    assert cli.main(("validate-config", "--config", str(config_path))) == 1


def test_run_closes_processor(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PLAIN_CONSOLE_LOGS", "1")
    config_path = tmp_path / "nyaa.yaml"
    config_path.write_text(f"settings:\n  download_dir: {tmp_path / 'media'}\n", encoding="utf-8")
    created = []

    class RecordingProcessor:
        def __init__(self, config, *, enable_notifications: bool = True) -> None:
            self.runs = 0
            self.closed = False
            created.append(self)

        def run_once(self):
            self.runs += 1
            return {}

        def close(self) -> None:
            self.closed = True

    monkeypatch.setattr(cli, "Processor", RecordingProcessor)

    code = cli.main(("--config", str(config_path), "--log-file", str(tmp_path / "nyaa.log"), "--once"))

    assert code == 0
    assert created[0].runs == 1
    assert created[0].closed is True
