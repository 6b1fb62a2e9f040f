from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from jsonschema import Draft7Validator

from .patterns import validate_pattern


@dataclass(slots=True)
class ValidationIssue:
    """Represents a single validation problem."""

    severity: str
    path: str
    message: str
    code: str


@dataclass(slots=True)
class ValidationReport:
    """Aggregates validation warnings and errors."""

    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "settings": {
            "type": "object",
            "properties": {
                "download_dir": {"type": "string", "minLength": 1},
                "download_list": {"type": "string", "minLength": 1},
                "nyaa_url": {"type": "string", "pattern": "^https?://"},
                "batch_size": {"type": "integer", "minimum": 1},
                "metadata_timeout": {"type": ["number", "integer"], "exclusiveMinimum": 0},
                "request_timeout": {"type": "integer", "minimum": 1},
                "dry_run": {"type": "boolean"},
            },
            "additionalProperties": True,
        },
        "email": {
            "type": "object",
            "properties": {
                "smtp": {
                    "type": "object",
                    "properties": {
                        "host": {"type": ["string", "null"]},
                        "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                        "secure": {"type": "boolean"},
                        "user": {"type": ["string", "null"]},
                        "password": {"type": ["string", "null"]},
                        "timeout": {"type": "integer", "minimum": 1},
                    },
                    "additionalProperties": True,
                },
                "from": {"type": ["string", "null"]},
                "from_name": {"type": "string"},
                "to": {
                    "oneOf": [
                        {"type": "array", "items": {"type": "string"}},
                        {"type": "string"},
                    ]
                },
            },
            "additionalProperties": True,
        },
    },
    "additionalProperties": True,
}

DOWNLOAD_LIST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": {
        "type": "array",
        "items": {"$ref": "#/definitions/series"},
    },
    "definitions": {
        "series": {
            "type": "object",
            "properties": {
                "folder": {"type": "string", "minLength": 1},
                "uploader": {"type": "string"},
                "query": {"type": "string"},
                "complete": {"type": "boolean"},
                "pattern": {"type": ["string", "null"]},
            },
            "required": ["folder", "query"],
            "additionalProperties": True,
        }
    },
}


def _format_jsonschema_path(path: Sequence[Any]) -> str:
    if not path:
        return "<root>"
    tokens: List[str] = []
    for part in path:
        if isinstance(part, int):
            if tokens:
                tokens[-1] = f"{tokens[-1]}[{part}]"
            else:
                tokens.append(f"[{part}]")
        else:
            tokens.append(str(part))
    return ".".join(tokens) if tokens else "<root>"


def _schema_issues(schema: Dict[str, Any], data: Any, report: ValidationReport) -> None:
    validator = Draft7Validator(schema)
    for error in sorted(validator.iter_errors(data), key=lambda exc: _format_jsonschema_path(exc.absolute_path)):
        report.errors.append(
            ValidationIssue(
                severity="error",
                path=_format_jsonschema_path(error.absolute_path),
                message=error.message,
                code="schema",
            )
        )


def validate_config_data(data: Dict[str, Any]) -> ValidationReport:
    report = ValidationReport()
    _schema_issues(CONFIG_SCHEMA, data, report)

    email = data.get("email") if isinstance(data, dict) else None
    if isinstance(email, dict):
        smtp = email.get("smtp") or {}
        if isinstance(smtp, dict) and smtp.get("host") and not email.get("to"):
            report.warnings.append(
                ValidationIssue(
                    severity="warning",
                    path="email.to",
                    message="SMTP host configured without recipients; reports will not be sent",
                    code="email-recipients",
                )
            )
    return report


def validate_download_list(data: Any) -> ValidationReport:
    report = ValidationReport()
    _schema_issues(DOWNLOAD_LIST_SCHEMA, data, report)
    if not isinstance(data, dict):
        return report

    for root_key, entries in data.items():
        if not isinstance(entries, list):
            continue
        seen_folders: Dict[str, int] = {}
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                continue
            path = f"{root_key}[{index}]"
            folder = entry.get("folder")
            if isinstance(folder, str):
                if folder in seen_folders:
                    report.errors.append(
                        ValidationIssue(
                            severity="error",
                            path=f"{path}.folder",
                            message=f"Duplicate series folder '{folder}' also defined at index {seen_folders[folder]}",
                            code="duplicate-folder",
                        )
                    )
                else:
                    seen_folders[folder] = index

            pattern = entry.get("pattern")
            if isinstance(pattern, str) and pattern and validate_pattern(pattern) is None:
                report.warnings.append(
                    ValidationIssue(
                        severity="warning",
                        path=f"{path}.pattern",
                        message=(
                            f"Custom pattern {pattern!r} must compile and contain exactly two groups; "
                            "default patterns will be used instead"
                        ),
                        code="pattern",
                    )
                )
    return report


__all__ = [
    "CONFIG_SCHEMA",
    "DOWNLOAD_LIST_SCHEMA",
    "ValidationIssue",
    "ValidationReport",
    "validate_config_data",
    "validate_download_list",
]
