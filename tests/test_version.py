"""
PURPOSE: Tests for packaged version metadata.
"""

import pytest

from aviator_signals.version import get_version, version_label


def test_version_json_is_packaged():
    data = get_version()

    assert data["version"]
    assert "codename" in data


def test_label_includes_codename():
    data = get_version()

    assert version_label() == f"{data['version']} ({data['codename']})"


@pytest.mark.asyncio
async def test_app_reports_packaged_version(app):
    assert app.version == get_version()["version"]
