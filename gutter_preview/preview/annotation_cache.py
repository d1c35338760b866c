"""Registry of the live annotation records of every known document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from gutter_preview.preview.interfaces import DecorationHandle
from gutter_preview.preview.types import TextRange


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AnnotationRecord:
    range: TextRange
    handle: DecorationHandle
    display_path: str
    original_path: str
    editor_id: str = ""


DocumentAnnotationSet = tuple[AnnotationRecord, ...]


def release_records(records: Iterable[AnnotationRecord]) -> int:
    """Release every handle in ``records``; one failing release does not stop the rest."""
    released = 0
    for record in records:
        try:
            record.handle.release()
        except Exception:
            logger.warning("Failed to release decoration for %s", record.display_path, exc_info=True)
            continue
        released += 1
    return released


class AnnotationCache:
    """Owns every ``AnnotationRecord`` and its decoration handle.

    Sets are stored as tuples and swapped whole, so readers only ever see the
    result of a completed scan. Handles of a set are released before the set
    is replaced or dropped.
    """

    def __init__(self) -> None:
        self._sets: dict[str, DocumentAnnotationSet] = {}

    def get_or_create(self, uri: str) -> DocumentAnnotationSet:
        current = self._sets.get(uri)
        if current is None:
            current = ()
            self._sets[uri] = current
        return current

    def records(self, uri: str) -> DocumentAnnotationSet:
        return self._sets.get(uri, ())

    def replace(self, uri: str, records: Iterable[AnnotationRecord]) -> None:
        new_set = tuple(records)
        previous = self._sets.get(uri, ())
        self._sets[uri] = ()
        release_records(previous)
        self._sets[uri] = new_set
        logger.debug("Annotations for %s: %d -> %d", uri, len(previous), len(new_set))

    def clear(self, uri: str) -> None:
        previous = self._sets.pop(uri, None)
        if previous:
            release_records(previous)

    def clear_all(self) -> None:
        for uri in list(self._sets.keys()):
            self.clear(uri)

    def uris(self) -> list[str]:
        return list(self._sets.keys())

    def handle_count(self) -> int:
        return sum(len(records) for records in self._sets.values())

    def __contains__(self, uri: object) -> bool:
        return uri in self._sets

    def __len__(self) -> int:
        return len(self._sets)
