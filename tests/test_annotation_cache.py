"""Tests for AnnotationCache."""

from gutter_preview.preview.annotation_cache import AnnotationCache, AnnotationRecord, release_records
from gutter_preview.preview.interfaces import DecorationRenderOptions
from gutter_preview.preview.types import TextRange


def _records(renderer, count, start=0):
    out = []
    for i in range(count):
        handle = renderer.create(DecorationRenderOptions(gutter_icon_path=f"/img/{i}.png"))
        out.append(
            AnnotationRecord(
                range=TextRange.from_coords(0, start + i * 10, 0, start + i * 10 + 5),
                handle=handle,
                display_path=f"/img/{i}.png",
                original_path=f"{i}.png",
            )
        )
    return out


class TestAnnotationCache:
    def test_get_or_create_stores_empty_set(self):
        cache = AnnotationCache()

        assert cache.get_or_create("file:///a") == ()
        assert "file:///a" in cache
        assert cache.uris() == ["file:///a"]

    def test_records_does_not_create(self):
        cache = AnnotationCache()

        assert cache.records("file:///a") == ()
        assert "file:///a" not in cache

    def test_replace_releases_previous_handles_once(self, renderer):
        """Each handle of the replaced set is released exactly once."""
        cache = AnnotationCache()
        first = _records(renderer, 3)
        cache.replace("file:///a", first)

        second = _records(renderer, 2)
        cache.replace("file:///a", second)

        assert [r.handle.release_count for r in first] == [1, 1, 1]
        assert [r.handle.release_count for r in second] == [0, 0]
        assert cache.records("file:///a") == tuple(second)

    def test_replace_with_empty_clears(self, renderer):
        cache = AnnotationCache()
        first = _records(renderer, 2)
        cache.replace("file:///a", first)

        cache.replace("file:///a", [])

        assert cache.records("file:///a") == ()
        assert "file:///a" in cache
        assert all(r.handle.release_count == 1 for r in first)

    def test_replace_is_not_visible_through_old_reference(self, renderer):
        """A set handed out earlier is never mutated in place."""
        cache = AnnotationCache()
        first = _records(renderer, 2)
        cache.replace("file:///a", first)
        snapshot = cache.records("file:///a")

        cache.replace("file:///a", _records(renderer, 1))

        assert snapshot == tuple(first)

    def test_clear_releases_and_removes(self, renderer):
        cache = AnnotationCache()
        first = _records(renderer, 2)
        cache.replace("file:///a", first)

        cache.clear("file:///a")

        assert "file:///a" not in cache
        assert all(r.handle.release_count == 1 for r in first)
        cache.clear("file:///a")
        assert all(r.handle.release_count == 1 for r in first)

    def test_clear_all(self, renderer):
        cache = AnnotationCache()
        a = _records(renderer, 1)
        b = _records(renderer, 2)
        cache.replace("file:///a", a)
        cache.replace("file:///b", b)
        assert cache.handle_count() == 3

        cache.clear_all()

        assert len(cache) == 0
        assert all(r.handle.release_count == 1 for r in a + b)

    def test_failing_release_does_not_leak_the_rest(self, renderer):
        records = _records(renderer, 3)

        def broken():
            raise RuntimeError("widget gone")

        records[0].handle.release = broken

        assert release_records(records) == 2
        assert records[1].handle.release_count == 1
        assert records[2].handle.release_count == 1
