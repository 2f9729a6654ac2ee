"""Readable summaries of pydantic validation errors."""

from pydantic import ValidationError


def describe_validation_error(error: ValidationError) -> str:
    """Join the failing locations and messages, e.g. `pageContext: Input should be a valid dictionary`."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "entrada"
        problems.append(f"{location}: {item.get('msg')}")
    return "; ".join(problems)
