# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/snapshot.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from infractl.observers.redact import redact

log = logging.getLogger("infractl")


def write_snapshot(path: str | Path, data: Dict[str, Any]) -> Path:
    """
    Persist the resolved configuration of a successful run.

    Credentials are masked and the file is created owner-only (0600).
    """
    path = Path(path)
    payload = json.dumps(redact(data), indent=2, sort_keys=False) + "\n"

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(payload)
    # O_CREAT mode does not apply to an existing file
    os.chmod(path, 0o600)

    log.debug("Wrote run snapshot %s", path)
    return path
