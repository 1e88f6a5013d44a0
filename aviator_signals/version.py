"""
PURPOSE: Version metadata for Aviator Signals, read from the packaged version.json.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

VERSION_FILE = Path(__file__).parent / "version.json"


@lru_cache
def get_version() -> Dict[str, Any]:
    """
    PURPOSE: Return the release metadata (version, codename, updated_at).

    CALLED BY: create_app() for the OpenAPI title/version, startup log

    Raises:
        FileNotFoundError: If version.json was not packaged.
        json.JSONDecodeError: If version.json is invalid JSON.
    """
    with open(VERSION_FILE, "r", encoding="utf-8") as f:
        return json.load(f)


def version_label() -> str:
    """'1.0.0 (Cashout)' style label, or 'unknown' when metadata is unreadable."""
    try:
        data = get_version()
    except (OSError, ValueError):
        return "unknown"
    codename = data.get("codename")
    version = data.get("version", "unknown")
    return f"{version} ({codename})" if codename else version
