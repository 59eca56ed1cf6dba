"""Strict-first, lenient-fallback parsing of structured LLM output.

Parsing runs in three stages and stops at the first one that succeeds:

1. ``json.loads`` on the stripped text.
2. ``json.loads`` after removing a surrounding markdown code fence.
3. Bracket-balanced extraction of the first top-level JSON object.

No character-level "repair" (quote unescaping, comma fixing) is attempted:
the extracted text is either valid JSON or the call fails. Whatever is parsed
is validated against the caller's schema before it is accepted.
"""

import json
import re
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from taskweave.core.errors import (
    MalformedStructuredOutputError,
    SchemaValidationError,
    TruncationSuspectedError,
)

_FENCE_PATTERN = re.compile(r"^```(?:json|JSON)?\s*\n?(.*?)\n?```\s*$", re.DOTALL)

# Responses longer than this that fail to parse are most likely cut off.
LONG_OUTPUT_CHARS = 20_000


def strip_code_fences(text: str) -> str:
    """Remove a single surrounding ``` fence, if present."""
    match = _FENCE_PATTERN.match(text.strip())
    return match.group(1).strip() if match else text.strip()


def extract_balanced_object(text: str) -> str | None:
    """Extract the first complete top-level ``{...}`` block.

    Braces inside JSON strings are ignored, and backslash escapes inside
    strings are honoured so ``"\\""`` does not end the string.

    Returns:
        The object text, or None if no object starts or the first one never
        closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    return None


def looks_truncated(text: str) -> bool:
    """Check whether output looks cut off mid-object."""
    stripped = strip_code_fences(text)
    if "{" not in stripped:
        return False
    if extract_balanced_object(stripped) is None:
        return True
    return len(stripped) > LONG_OUTPUT_CHARS and not stripped.rstrip().endswith("}")


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object out of raw model output.

    Raises:
        TruncationSuspectedError: The outermost object is never closed.
        MalformedStructuredOutputError: No valid JSON object could be found.
    """
    if not text or not text.strip():
        raise MalformedStructuredOutputError("Response was empty; expected a JSON object", text)

    candidates = [text.strip()]
    unfenced = strip_code_fences(text)
    if unfenced != candidates[0]:
        candidates.append(unfenced)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    extracted = extract_balanced_object(unfenced)
    if extracted is None:
        if looks_truncated(text):
            raise TruncationSuspectedError(
                f"Response appears truncated ({len(text)} chars, outer JSON object never "
                "closes). Reduce the number of tasks per request or raise max tokens.",
                text,
            )
        raise MalformedStructuredOutputError("Response did not contain a JSON object", text)

    logger.debug(f"Strict JSON parse failed, using extracted object ({len(extracted)} chars)")
    try:
        parsed = json.loads(extracted)
    except json.JSONDecodeError as e:
        raise MalformedStructuredOutputError(
            f"Extracted JSON object is invalid: {e.msg} at position {e.pos}",
            text,
        ) from e

    if not isinstance(parsed, dict):
        raise MalformedStructuredOutputError("Extracted JSON is not an object", text)
    return parsed


def validate_object(data: Any, schema: type[BaseModel]) -> BaseModel:
    """Validate parsed data against a pydantic schema.

    Raises:
        SchemaValidationError: If the data does not satisfy the schema.
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(
            f"Generated object failed schema validation for {schema.__name__}: "
            f"{e.error_count()} error(s); first: {e.errors()[0]['msg']}"
        ) from e


def json_instruction(schema: type[BaseModel], object_name: str) -> str:
    """Build the system-prompt suffix that asks for bare JSON output."""
    schema_json = json.dumps(schema.model_json_schema(by_alias=True))
    return (
        f"\n\nIMPORTANT: Your response must be ONLY valid JSON that matches this schema: "
        f"{schema_json}.\n"
        f"The response should be a single valid JSON object for {object_name} with no other "
        "text, no markdown code blocks, no explanations."
    )
