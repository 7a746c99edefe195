"""Redaction of sensitive values in command vectors before they are logged."""

from __future__ import annotations

from collections.abc import Sequence

# Flags whose following argument is a credential (substring match, case-insensitive).
SENSITIVE_FLAG_MARKERS: list[str] = [
    "password",
    "secret",
    "token",
    "account-key",
    "connection-string",
    "sas",
]

# Flags that carry a secret only for specific subcommands.
_SENSITIVE_EXACT_FLAGS = frozenset({"--value"})


def _is_sensitive_flag(arg: str) -> bool:
    if not arg.startswith("-"):
        return False
    flag = arg.split("=", 1)[0].lower()
    if flag in _SENSITIVE_EXACT_FLAGS:
        return True
    return any(marker in flag for marker in SENSITIVE_FLAG_MARKERS)


def redact_command(command: Sequence[str], *, mask: str = "***") -> list[str]:
    """Return a copy of ``command`` with credential arguments replaced by ``mask``.

    Handles both ``--flag value`` and ``--flag=value`` forms.
    """
    redacted: list[str] = []
    hide_next = False
    for arg in command:
        if hide_next:
            redacted.append(mask)
            hide_next = False
            continue
        if _is_sensitive_flag(arg):
            if "=" in arg:
                flag = arg.split("=", 1)[0]
                redacted.append(f"{flag}={mask}")
            else:
                redacted.append(arg)
                hide_next = True
            continue
        redacted.append(arg)
    return redacted
