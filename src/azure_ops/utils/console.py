"""Diagnostic output for CI logs.

Diagnostics always go to stderr (or an injected stream) so stdout carries
only payload that callers capture.
"""

from __future__ import annotations

import sys
from typing import TextIO

SUCCESS = "✅"
WARNING = "⚠️"
FAILURE = "❌"
INFO = "ℹ️"


def emit(message: str, stream: TextIO | None = None) -> None:
    target = stream if stream is not None else sys.stderr
    print(message, file=target)
    target.flush()
