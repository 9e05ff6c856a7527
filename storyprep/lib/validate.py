"""
Schema validation for story artifacts.

Every story dict is checked against its bundled JSON Schema before it is
written, so a file on disk always parses back into a StoryArtifact.
"""

import json
from pathlib import Path
from typing import Optional

import jsonschema

SCHEMA_SUFFIX = ".schema.json"


class ValidationError(Exception):
    """Data does not match its schema."""

    def __init__(self, schema_name: str, problems: list[str], path: Optional[str] = None):
        self.schema_name = schema_name
        self.problems = problems
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"[{schema_name}]{where} " + "; ".join(problems))


_validators: dict[str, object] = {}


def schemas_dir() -> Path:
    return Path(__file__).parent.parent / "schemas"


def _validator(schema_name: str):
    if schema_name not in _validators:
        schema_path = schemas_dir() / f"{schema_name}{SCHEMA_SUFFIX}"
        if not schema_path.exists():
            raise ValidationError(schema_name, [f"no schema at {schema_path}"])
        schema = json.loads(schema_path.read_text())
        cls = jsonschema.validators.validator_for(schema)
        _validators[schema_name] = cls(schema)
    return _validators[schema_name]


def _location(error: jsonschema.ValidationError) -> str:
    return ".".join(str(p) for p in error.absolute_path) or "(root)"


def schema_problems(data: dict, schema_name: str) -> list[str]:
    """All violations as 'location: message', ordered by location."""
    errors = sorted(_validator(schema_name).iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    return [f"{_location(e)}: {e.message}" for e in errors]


def validate(data: dict, schema_name: str, filepath: Optional[Path] = None) -> None:
    """Raise ValidationError listing every violation, if there are any."""
    problems = schema_problems(data, schema_name)
    if problems:
        raise ValidationError(schema_name, problems, str(filepath) if filepath else None)


def validate_file(filepath: Path, schema_name: str) -> dict:
    """Load a JSON file and validate it. Returns the parsed data.

    Raises:
        ValidationError: if the file is missing, not JSON, or off-schema
    """
    if not filepath.exists():
        raise ValidationError(schema_name, ["file not found"], str(filepath))
    try:
        data = json.loads(filepath.read_text())
    except json.JSONDecodeError as e:
        raise ValidationError(schema_name, [f"invalid JSON: {e}"], str(filepath)) from None
    validate(data, schema_name, filepath)
    return data


def validate_before_write(data: dict, schema_name: str, filepath: Path) -> None:
    """Refuse to write data that doesn't match its schema."""
    validate(data, schema_name, filepath)
