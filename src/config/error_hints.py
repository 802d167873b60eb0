"""Remediation hints for slot table validation errors.

The loader reports errors as ``{"loc", "msg", "type"}`` dicts; the CLI
prints each one with a short hint keyed by the offending field or, failing
that, by the error type.
"""

from collections.abc import Mapping
from typing import Final


ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "Add the field; every slot table needs a rules list.",
    "enum": "Use one of the card types listed in the slot table docs.",
    "int_type": "Use a whole number.",
    "int_parsing": "Use a whole number.",
    "bool_type": "Use true or false.",
    "list_type": "Give rules as a YAML list.",
    "greater_than_equal": "The value is below the allowed minimum.",
    "too_short": "Add at least one slot rule.",
    "extra_forbidden": "Remove the field or fix its spelling.",
    "value_error": "Give each rule either every_n or single_position, not both.",
    "file_not_found": "Check the --table path.",
    "yaml_parse_error": "Fix the YAML syntax (indentation, brackets, colons).",
    "slot_collision": "Move one card to a free offset, or set allow_collisions: true.",
}

FIELD_HINTS: Final[dict[str, str]] = {
    "card_type": (
        "One of: sentiment, insight, quiz, events, community_pulse, "
        "parliamentary_digest, flashback."
    ),
    "every_n": "A positive interval; the card first shows after every_n stories.",
    "offset": "0 or greater; positions are offset + k * every_n for k >= 1.",
    "single_position": "A story index of 1 or greater.",
    "horizon": "A positive number of story positions to check.",
}

_FALLBACK_HINT: Final = "See config/slots.yaml for a valid table."


def get_error_hint(error_type: str, location: str | None = None) -> str:
    """Pick the most specific hint for an error.

    Args:
        error_type: Pydantic error type or a loader error type.
        location: Dotted error location such as ``rules.0.every_n``.

    Returns:
        Hint text.
    """
    field = (location or "").rsplit(".", 1)[-1]
    return FIELD_HINTS.get(field) or ERROR_HINTS.get(error_type, _FALLBACK_HINT)


def format_validation_error(error: Mapping[str, str], *, include_hint: bool = True) -> str:
    """Render one loader error for terminal output.

    Args:
        error: Error dict with ``loc``, ``msg`` and optional ``type``.
        include_hint: Whether to append a hint line.

    Returns:
        ``"<loc>: <msg>"``, followed by an indented hint line when requested.
    """
    line = f"{error['loc']}: {error['msg']}"
    if not include_hint:
        return line
    return f"{line}\n    Hint: {get_error_hint(error.get('type', ''), error['loc'])}"
