# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/observers/redact.py

from __future__ import annotations

import re
from typing import Any

REDACTED = "**********"

_SENSITIVE = re.compile(r"(password|passwd|token|credential)", re.IGNORECASE)


def is_sensitive(key: str) -> bool:
    return bool(_SENSITIVE.search(key))


def redact(data: Any) -> Any:
    """Return a copy of *data* with values under sensitive keys masked."""
    if isinstance(data, dict):
        return {
            k: (REDACTED if is_sensitive(str(k)) and v not in (None, "") else redact(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact(v) for v in data]
    return data
