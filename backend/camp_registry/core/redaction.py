"""Credential masking shared by config, error messages and log processors."""

import re

# Secrets no longer than this are fully hidden.
_MIN_PREVIEW_LENGTH = 10
_PREFIX_CHARS = 7
_SUFFIX_CHARS = 4

_SECRET_PATTERN = re.compile(
    r"(sk-[A-Za-z0-9_\-]{4,}|(?<=Bearer )[A-Za-z0-9_\-\.]{4,})"
)


def mask_secret(
    value: str | None, prefix: int = _PREFIX_CHARS, suffix: int = _SUFFIX_CHARS
) -> str:
    """Return a log-safe preview of a credential.

    Secrets longer than ``prefix + suffix`` (and longer than 10) characters
    show the first 7 and last 4 characters with the middle elided
    (``sk-proj...wxyz``). Anything shorter is fully hidden, so at least one
    character is always withheld.

    Args:
        value: The credential to mask.
        prefix: Leading characters kept.
        suffix: Trailing characters kept.

    Returns:
        Masked representation. Never the full value.
    """
    if not value or len(value) <= max(_MIN_PREVIEW_LENGTH, prefix + suffix):
        return "***"
    return f"{value[:prefix]}...{value[-suffix:]}"


def scrub_secrets(text: str) -> str:
    """Mask every API-key or bearer-token shaped substring in free-form text.

    Args:
        text: Text that may embed a credential, e.g. an upstream error message.

    Returns:
        The text with each credential-shaped match replaced by its mask.
    """
    return _SECRET_PATTERN.sub(lambda m: mask_secret(m.group(0)), text)
