"""PII helpers for log output."""


def redact_pii(value: str) -> str:
    """Mask PII for logging, showing the first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]
