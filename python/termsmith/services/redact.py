"""Redaction, hashing, and log guard utilities.

- hash_text: stable SHA-256 hex digest for log correlation
- safe_kv: log guard that blocks forbidden keys at call site

Never-log policy:
- Provider API keys
- Session tokens
- System prompts and user messages
- Model responses (partial or complete)

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
- Token estimates, provider request ID
"""

import hashlib
import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "system_prompt",
        "message",
        "user_message",
        "response",
        "response_text",
        "content",
        "api_key",
        "bearer",
        "token",
        "session_token",
        "secret",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string.

    Stable: same input always produces same output.
    Used for log correlation without exposing content.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used
    without a redacted suffix. In staging/prod, logs a warning instead.

    Usage:
        logger.info("chat.turn.persisted", **safe_kv(
            chat_id=chat_id,
            prompt_chars=len(prompt),   # OK: _chars suffix
            # prompt=prompt,            # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for TERMSMITH_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.

    Raises:
        ValueError: In local/test, if a forbidden key is used without redacted suffix.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("TERMSMITH_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger("termsmith.services.redact").warning(
            "safe_kv_violation", forbidden_keys=violations
        )

    return kwargs
