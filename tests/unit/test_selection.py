"""
Unit tests for turning a selection into enqueue input.
"""

from offlinetube.core.selection import build_video_refs, resolve_quality


class TestResolveQuality:

    def test_override_wins(self):
        assert resolve_quality("v1", {"v1": "1080p"}, "720p") == "1080p"

    def test_falls_back_to_global(self):
        assert resolve_quality("v1", {"v2": "1080p"}, "720p") == "720p"
        assert resolve_quality("v1", None, "720p") == "720p"
        assert resolve_quality("v1", {"v1": ""}, "720p") == "720p"


class TestBuildVideoRefs:

    def test_keeps_selection_order(self, catalog):
        refs = build_video_refs(["v3", "v1"], catalog, {}, "720p")

        assert [ref.id for ref in refs] == ["v3", "v1"]
        assert refs[0].title == "Video v3"
        assert refs[0].thumbnail_url == "https://img/v3.jpg"

    def test_skips_unknown_and_repeated_ids(self, catalog):
        refs = build_video_refs(["v1", "nope", "v1", "v2"], catalog, {"v2": "audio_only"}, "480p")

        assert [(ref.id, ref.quality) for ref in refs] == [("v1", "480p"), ("v2", "audio_only")]

    def test_empty_selection(self, catalog):
        assert build_video_refs([], catalog, None, "720p") == []
