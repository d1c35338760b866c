from __future__ import annotations

from gutter_preview.preview.annotation_cache import AnnotationCache, AnnotationRecord
from gutter_preview.preview.interfaces import EditorDocument
from gutter_preview.preview.types import TextPosition


class PositionResolver:
    def __init__(self, cache: AnnotationCache) -> None:
        self._cache = cache

    def resolve(self, document: EditorDocument, position: TextPosition) -> AnnotationRecord | None:
        """Return the first cached record of ``document`` whose range contains ``position``."""
        for record in self._cache.records(str(document.uri or "")):
            if record.range.contains(position):
                return record
        return None
