"""Request body encoding and response parsing helpers shared by requestors."""

from __future__ import annotations

import json
from typing import Any, Mapping
from urllib.parse import urlencode

from .errors import ParseError

JSON = "application/json"
FORM = "application/x-www-form-urlencoded"

# Recognised ``content_type`` shorthands; anything else is treated as "other".
CONTENT_TYPES: dict[str, str] = {
    "json": JSON,
    JSON: JSON,
    "default": JSON,
    "x-www-form-urlencoded": FORM,
    FORM: FORM,
}


def normalize_content_type(content_type: str | None) -> str:
    if isinstance(content_type, str) and content_type in CONTENT_TYPES:
        return CONTENT_TYPES[content_type]
    return JSON


def content_type_from_header(value: str) -> str | None:
    """Map an explicit Content-Type header onto the encoder it implies.

    Returns ``None`` when the header names a type we only stringify.
    """
    lowered = value.lower()
    if FORM in lowered:
        return FORM
    if JSON in lowered:
        return JSON
    return None


def encode_body(body: Any, content_type: str | None) -> str:
    if isinstance(body, str):
        return body
    if content_type == JSON:
        return json.dumps(body)
    if content_type == FORM:
        if isinstance(body, Mapping):
            return urlencode(list(body.items()))
        return urlencode(body)
    return str(body)


def is_json_content_type(headers: Mapping[str, str]) -> bool:
    return any(
        "content-type" in key.lower() and JSON in (value or "").lower()
        for key, value in headers.items()
    )


def parse_response_text(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON response: {exc}", context=text) from exc


def parse_headers_block(block: str) -> dict[str, str]:
    """Split a CRLF-joined ``name: value`` block back into a mapping."""
    headers: dict[str, str] = {}
    for line in block.split("\r\n"):
        if not line:
            continue
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return headers


__all__ = [
    "CONTENT_TYPES",
    "FORM",
    "JSON",
    "content_type_from_header",
    "encode_body",
    "is_json_content_type",
    "normalize_content_type",
    "parse_headers_block",
    "parse_response_text",
]
