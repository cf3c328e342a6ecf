"""Helpers to load and validate the JSON schemas for model replies."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from .errors import DownstreamFormatError


def default_schema_path() -> Path:
    """Return the path to the bundled intent schema file."""
    return Path(__file__).resolve().parent / "schemas" / "intent.json"


@lru_cache(maxsize=4)
def load_schema(path: Optional[Path | str] = None) -> Dict[str, Any]:
    """Load and cache a schema as a dictionary."""
    schema_path = Path(path) if path else default_schema_path()
    return json.loads(schema_path.read_text(encoding="utf-8"))


def format_errors(errors: Iterable[ValidationError]) -> str:
    """Turn jsonschema errors into a concise human-readable string."""
    parts = []
    for err in errors:
        location = ".".join(str(piece) for piece in err.absolute_path) or "<root>"
        parts.append(f"{location}: {err.message}")
    return "; ".join(parts)


def validate_intent_payload(
    payload: Any, schema: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Validate a decoded model reply against the intent schema.

    Raises DownstreamFormatError with a readable message if validation fails.
    """
    schema_dict = schema or load_schema()
    validator = Draft202012Validator(schema_dict)
    errors = sorted(
        validator.iter_errors(payload),
        key=lambda err: [str(piece) for piece in err.absolute_path],
    )
    if errors:
        raise DownstreamFormatError(
            f"Intent reply failed schema validation: {format_errors(errors)}"
        )
    return payload
