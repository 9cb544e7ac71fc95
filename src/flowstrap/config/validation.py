"""Configuration validation for flowstrap.

Warns on unknown keys and wrongly typed values instead of failing, so a
typo in flowstrap.yml never blocks provisioning.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any, Dict, List, Optional, Set, Tuple

from flowstrap.core.logging import get_logger

LOGGER = get_logger(__name__)

VALID_TOP_LEVEL_KEYS: Set[str] = {
    "artifacts",
    "timeouts",
    "selection",
    "local",
    "entry_points",
    "check_prerequisites",
    "local_config",
}

# Expected keys and types per section
SECTION_SCHEMAS: Dict[str, Dict[str, Tuple[type, ...]]] = {
    "artifacts": {
        "version": (str,),
        "remote_base": (str,),
        "managed_archive": (str,),
        "native_archive": (str,),
        "managed_min_bytes": (int,),
        "native_min_bytes": (int,),
    },
    "timeouts": {
        "download": (int, float),
        "extraction": (int, float),
    },
    "selection": {
        "inspect_headers": (bool,),
    },
    "local": {
        "managed_archive": (str,),
        "native_dir": (str,),
    },
}


@dataclass
class ConfigValidationWarning:
    """A validation warning for configuration."""

    message: str
    source: str
    key: Optional[str] = None
    suggestion: Optional[str] = None


def validate_config(
    data: Dict[str, Any],
    source: str,
) -> List[ConfigValidationWarning]:
    """Validate a configuration dictionary.

    Does not raise exceptions - returns warnings instead.

    Args:
        data: Config dictionary to validate.
        source: Source file path for warning messages.

    Returns:
        List of validation warnings.
    """
    warnings: List[ConfigValidationWarning] = []

    if not isinstance(data, dict):
        warnings.append(ConfigValidationWarning(
            message=f"Config must be a mapping, got {type(data).__name__}",
            source=source,
        ))
        return warnings

    for key, value in data.items():
        if key not in VALID_TOP_LEVEL_KEYS:
            _add(warnings, ConfigValidationWarning(
                message=f"Unknown top-level key '{key}'",
                source=source,
                key=key,
                suggestion=_suggest_key(key, VALID_TOP_LEVEL_KEYS),
            ))
            continue

        schema = SECTION_SCHEMAS.get(key)
        if schema is not None:
            _validate_section(key, value, schema, source, warnings)

    entry_points = data.get("entry_points")
    if entry_points is not None and (
        not isinstance(entry_points, list)
        or not all(isinstance(item, str) for item in entry_points)
    ):
        _add(warnings, ConfigValidationWarning(
            message="'entry_points' must be a list of strings",
            source=source,
            key="entry_points",
        ))

    check = data.get("check_prerequisites")
    if check is not None and not isinstance(check, bool):
        _add(warnings, ConfigValidationWarning(
            message="'check_prerequisites' must be a boolean",
            source=source,
            key="check_prerequisites",
        ))

    return warnings


def _validate_section(
    section: str,
    value: Any,
    schema: Dict[str, Tuple[type, ...]],
    source: str,
    warnings: List[ConfigValidationWarning],
) -> None:
    if not isinstance(value, dict):
        _add(warnings, ConfigValidationWarning(
            message=f"'{section}' must be a mapping, got {type(value).__name__}",
            source=source,
            key=section,
        ))
        return

    for key, item in value.items():
        if key not in schema:
            _add(warnings, ConfigValidationWarning(
                message=f"Unknown key '{section}.{key}'",
                source=source,
                key=f"{section}.{key}",
                suggestion=_suggest_key(key, set(schema)),
            ))
            continue
        expected = schema[key]
        # bool is an int subclass; only accept it where bool is expected
        wrong_bool = isinstance(item, bool) and bool not in expected
        if item is not None and (wrong_bool or not isinstance(item, expected)):
            names = " or ".join(t.__name__ for t in expected)
            _add(warnings, ConfigValidationWarning(
                message=f"'{section}.{key}' must be {names}, got {type(item).__name__}",
                source=source,
                key=f"{section}.{key}",
            ))


def _add(warnings: List[ConfigValidationWarning], warning: ConfigValidationWarning) -> None:
    warnings.append(warning)
    _log_warning(warning)


def _suggest_key(invalid_key: str, valid_keys: Set[str]) -> Optional[str]:
    """Suggest a valid key for a potential typo."""
    matches = get_close_matches(invalid_key, list(valid_keys), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _log_warning(warning: ConfigValidationWarning) -> None:
    msg = f"{warning.message} in {warning.source}"
    if warning.suggestion:
        msg += f" (did you mean '{warning.suggestion}'?)"
    LOGGER.warning(msg)
