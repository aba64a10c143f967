"""
Unit tests for page snapshots.

Tests cover:
- Finishing a raw capture: base href, resources, iframes (snapshot.py, dom.py)
- Error variants instead of exceptions
- Capture against a mocked surface and the snapshot archive
"""

import json

import pytest

from webtasks.core.exceptions import ExecutionFailure
from webtasks.core.models import PageSnapshot, SnapshotError
from webtasks.page.snapshot import CAPTURE_SCRIPT, SnapshotSerializer
from webtasks.utils.dom import parse_html, resolve_reference


# ============================================================================
# TEST: Building Snapshots (snapshot.py)
# ============================================================================

class TestBuild:
    """Test build() on raw capture objects."""

    @pytest.fixture
    def serializer(self, mock_settings):
        return SnapshotSerializer(mock_settings)

    def test_base_injected_once(self, serializer, capture_data):
        snapshot = serializer.build(capture_data)

        soup = parse_html(snapshot.html)
        bases = soup.find_all("base")
        assert len(bases) == 1
        assert bases[0]["href"] == "https://x.test/p/"
        assert soup.head.find(True) is bases[0]

    def test_existing_base_kept(self, serializer, capture_data):
        capture_data["html"] = '<html><head><base href="https://cdn.test/"></head><body></body></html>'
        capture_data["baseHref"] = "https://cdn.test/"

        snapshot = serializer.build(capture_data)

        bases = parse_html(snapshot.html).find_all("base")
        assert [b["href"] for b in bases] == ["https://cdn.test/"]

    def test_doctype_preserved(self, serializer, capture_data):
        assert serializer.build(capture_data).html.startswith("<!DOCTYPE html>")

    def test_resources_resolved_against_base(self, serializer, capture_data):
        snapshot = serializer.build(capture_data)

        table = [(r.tag, r.attribute, r.raw_value, r.absolute_url) for r in snapshot.resources]
        assert table == [
            ("img", "src", "/a.png", "https://x.test/a.png"),
            ("a", "href", "next", "https://x.test/p/next"),
        ]

    def test_page_resource_table_used_as_is(self, serializer, capture_data):
        capture_data["resources"] = [
            {"tag": "img", "attr": "src", "value": " /a.png ", "absolute": "https://x.test/a.png"},
        ]
        capture_data["iframes"][1]["absolute"] = "https://x.test/inner?from=page"

        snapshot = serializer.build(capture_data)

        assert [(r.raw_value, r.absolute_url) for r in snapshot.resources] == [(" /a.png ", "https://x.test/a.png")]
        assert snapshot.iframes[1].absolute_url == "https://x.test/inner?from=page"

    def test_empty_page_resource_table(self, serializer, capture_data):
        capture_data["resources"] = []
        assert serializer.build(capture_data).resources == []

    def test_resources_skip_empty_and_shadow(self, serializer, capture_data):
        capture_data["html"] = (
            '<html><head></head><body><img src=""><img>'
            '<div><template shadowrootmode="open"><img src="/shadow.png"></template></div>'
            '<script src="app.js"></script></body></html>'
        )
        snapshot = serializer.build(capture_data)
        assert [r.absolute_url for r in snapshot.resources] == ["https://x.test/p/app.js"]

    def test_location_fields(self, serializer, capture_data):
        snapshot = serializer.build(capture_data)
        assert snapshot.url == "https://x.test/p/q?z=1"
        assert snapshot.origin == "https://x.test"
        assert snapshot.path_segments == ["p", "q"]
        assert snapshot.title == "Shop"

    def test_iframes(self, serializer, capture_data):
        capture_data["iframes"][0]["html"] = "<html>should not leak</html>"

        cross, same = serializer.build(capture_data).iframes

        assert cross.same_origin is False
        assert cross.html == ""
        assert cross.absolute_url == "https://other.test/frame"
        assert same.absolute_url == "https://x.test/inner"
        assert "inner" in same.html

    def test_wire_form(self, serializer, capture_data):
        data = serializer.build(capture_data).to_wire()
        assert set(data) == {
            "url", "origin", "path", "pathSegments", "baseHref",
            "title", "html", "resources", "iframes",
        }
        assert set(data["resources"][0]) == {"tag", "attr", "value", "absolute"}
        assert data["iframes"][0]["sameOrigin"] is False

    def test_error_object(self, serializer):
        result = serializer.build({"error": "SecurityError"})
        assert isinstance(result, SnapshotError)
        assert result.error == "SecurityError"

    def test_missing_document(self, serializer):
        assert isinstance(serializer.build({"url": "https://x.test"}), SnapshotError)


class TestResolveReference:
    """Test URL resolution helper (dom.py)."""

    def test_empty_reference_drops_fragment(self):
        assert resolve_reference("", "https://x.test/p/#top") == "https://x.test/p/"

    def test_absolute_reference(self):
        assert resolve_reference("https://cdn.test/a.js", "https://x.test/") == "https://cdn.test/a.js"

    @pytest.mark.parametrize("raw,expected", [
        (" /a.png ", "https://x.test/a.png"),
        ("\\a.png", "https://x.test/a.png"),
        ("\\\\cdn.test\\a.js", "https://cdn.test/a.js"),
        ("ne\nxt", "https://x.test/p/next"),
        ("\t\x00", "https://x.test/p/"),
    ])
    def test_matches_browser_parsing(self, raw, expected):
        assert resolve_reference(raw, "https://x.test/p/#top") == expected

    def test_backslash_kept_for_other_schemes(self):
        assert resolve_reference("urn:a\\b", "https://x.test/") == "urn:a\\b"


# ============================================================================
# TEST: Capture (snapshot.py)
# ============================================================================

class TestCapture:
    """Test capture() against a mocked surface."""

    @pytest.mark.asyncio
    async def test_no_surface_is_noop(self, mock_settings):
        assert await SnapshotSerializer(mock_settings).capture(None) is None

    @pytest.mark.asyncio
    async def test_capture_evaluates_script(self, mock_settings, mock_surface, capture_data):
        mock_surface.evaluate_script.return_value = json.dumps(capture_data)

        snapshot = await SnapshotSerializer(mock_settings).capture(mock_surface)

        assert isinstance(snapshot, PageSnapshot)
        mock_surface.evaluate_script.assert_awaited_once_with(CAPTURE_SCRIPT)

    @pytest.mark.asyncio
    async def test_evaluation_failure_is_error_variant(self, mock_settings, mock_surface):
        mock_surface.evaluate_script.side_effect = ExecutionFailure("Script evaluation failed: boom")

        result = await SnapshotSerializer(mock_settings).capture(mock_surface)

        assert isinstance(result, SnapshotError)
        assert "boom" in result.error

    @pytest.mark.asyncio
    async def test_garbage_result_is_error_variant(self, mock_settings, mock_surface):
        mock_surface.evaluate_script.return_value = "<html>not json"
        assert isinstance(await SnapshotSerializer(mock_settings).capture(mock_surface), SnapshotError)

    @pytest.mark.asyncio
    async def test_empty_result_is_error_variant(self, mock_settings, mock_surface):
        mock_surface.evaluate_script.return_value = None
        assert isinstance(await SnapshotSerializer(mock_settings).capture(mock_surface), SnapshotError)

    @pytest.mark.asyncio
    async def test_archive_written(self, mock_settings, mock_surface, capture_data):
        settings = mock_settings.model_copy(update={"archive_snapshots": True})
        mock_surface.evaluate_script.return_value = json.dumps(capture_data)

        snapshot = await SnapshotSerializer(settings).capture(mock_surface)

        files = list(settings.snapshot_dir.glob("webview_snapshot_*.html"))
        assert len(files) == 1
        assert files[0].read_text(encoding="utf-8") == snapshot.html

    @pytest.mark.asyncio
    async def test_archive_failure_does_not_change_result(self, mock_settings, mock_surface, capture_data, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        settings = mock_settings.model_copy(update={"archive_snapshots": True, "snapshot_dir": blocker})
        mock_surface.evaluate_script.return_value = json.dumps(capture_data)

        snapshot = await SnapshotSerializer(settings).capture(mock_surface)

        assert isinstance(snapshot, PageSnapshot)
