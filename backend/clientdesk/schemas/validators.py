"""Reusable Pydantic field validators.

Used by the step, comment, file and link schemas:
- Required text (titles, names)
- Attachment / link URL validation
- Creator role validation
- Upload file name validation
"""

import re


URL_REGEX = re.compile(
    r"^https?://"  # http:// or https://
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|"  # domain
    r"localhost|"  # localhost
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"  # IP
    r"(?::\d+)?"  # optional port
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)

CREATOR_ROLES = ("admin", "client")


def validate_required_text(value: str, max_length: int = 255) -> str:
    """Strip and require a non-empty string.

    Raises:
        ValueError: If blank or too long
    """
    if not isinstance(value, str):
        raise ValueError("Must be a string")

    value = value.strip()
    if not value:
        raise ValueError("Value is required")
    if len(value) > max_length:
        raise ValueError(f"String too long (max {max_length} characters)")
    return value


def validate_url(value: str) -> str:
    """Validate an http(s) URL.

    Raises:
        ValueError: If URL is invalid
    """
    if not value:
        raise ValueError("URL is required")

    value = value.strip()
    if not URL_REGEX.match(value):
        raise ValueError("Invalid URL format")
    return value


def validate_creator_role(value: str) -> str:
    value = (value or "").strip().lower()
    if value not in CREATOR_ROLES:
        raise ValueError("created_by must be 'admin' or 'client'")
    return value


def validate_file_name(value: str) -> str:
    """Upload names become part of an object key; no path segments allowed."""
    value = validate_required_text(value)
    if "/" in value or "\\" in value:
        raise ValueError("File name must not contain path separators")
    return value

