"""
Shared fixtures.

No real browser or network: the script surface is an AsyncMock and the
reasoning service is either an AsyncMock or an httpx.MockTransport.
"""

import pytest
from unittest.mock import AsyncMock

from webtasks.config.settings import Settings
from webtasks.infrastructure.surface import ScriptSurface


@pytest.fixture
def mock_settings(tmp_path):
    """Settings with fast timers and archiving into a temp directory."""
    return Settings(
        reasoning_service_url="https://reasoning.test/answer",
        settle_interval=0,
        dwell_seconds=0.05,
        narration_timeout=5,
        archive_snapshots=False,
        snapshot_dir=tmp_path / "snapshots",
    )


@pytest.fixture
def mock_surface():
    """Script surface whose evaluate_script result is set per test."""
    surface = AsyncMock(spec=ScriptSurface)
    surface.evaluate_script = AsyncMock(return_value=None)
    return surface


PAGE_HTML = """<!DOCTYPE html>
<html><head><title>Shop</title></head>
<body>
<img src="/a.png">
<a href="next">Next page</a>
<button id="submit-btn">Checkout</button>
</body></html>"""


@pytest.fixture
def capture_data():
    """Raw object as returned by the in-page capture script."""
    return {
        "url": "https://x.test/p/q?z=1",
        "origin": "https://x.test",
        "path": "/p/q",
        "baseHref": "https://x.test/p/",
        "title": "Shop",
        "html": PAGE_HTML,
        "iframes": [
            {"src": "https://other.test/frame", "sameOrigin": False, "html": ""},
            {"src": "/inner", "sameOrigin": True, "html": "<html><body>inner</body></html>"},
        ],
    }
