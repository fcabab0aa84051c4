from typing import Any

SENSITIVE_KEYS = frozenset({
    "password",
    "password_hash",
    "new_password",
    "current_password",
    "token",
    "secret",
})
REDACTED = "[REDACTED]"


def redact(value: Any) -> Any:
    """Returns a copy of value with every sensitive key's value masked, at any depth."""
    if isinstance(value, dict):
        return {
            key: REDACTED if isinstance(key, str) and key.lower() in SENSITIVE_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value
