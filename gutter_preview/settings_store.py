from __future__ import annotations

import json
import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from gutter_preview.preview.interfaces import ConfigurationSource, EditorDocument
from gutter_preview.settings_schema import SETTINGS_NAMESPACE, default_preview_settings


FOLDER_SETTINGS_FILENAME = ".gutterpreview.json"
APP_DIR_ENV = "GUTTERPREVIEW_APP_DIR"

logger = logging.getLogger(__name__)


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be loaded or saved."""


def default_app_dir() -> str:
    override = os.environ.get(APP_DIR_ENV, "").strip()
    if override:
        return str(Path(override).expanduser())
    return str(Path.home() / ".gutterpreview")


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Merge defaults into data without overwriting explicitly provided values."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        if key not in merged:
            merged[key] = deepcopy(default_value)
            continue
        current = merged[key]
        if isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def _read_json_object(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise SettingsStoreError(f"Could not read settings file '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise SettingsStoreError(
            f"Settings root in '{path}' must be a JSON object, found {type(raw).__name__}."
        )
    return raw


class JsonSettingsStore:
    """Read-only JSON settings file merged over defaults, with dotted-key lookup."""

    def __init__(self, path: Path, defaults: Mapping[str, Any]) -> None:
        self.path = Path(path)
        self.defaults: dict[str, Any] = deepcopy(dict(defaults))
        self.data: dict[str, Any] = deep_merge_defaults({}, self.defaults)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            self.data = deep_merge_defaults({}, self.defaults)
            return self.data
        self.data = deep_merge_defaults(_read_json_object(self.path), self.defaults)
        return self.data

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)


class PreviewConfiguration(ConfigurationSource):
    """Configuration source with an application scope and per-folder overrides.

    Folder overrides live in ``<folder>/.gutterpreview.json``; the folder that is
    the longest prefix of the document path wins. Keys are looked up under the
    ``gutterpreview`` namespace, so ``get(doc, "showUnderline", True)`` reads
    ``gutterpreview.showUnderline``.
    """

    def __init__(self, app_store: JsonSettingsStore | None = None) -> None:
        if app_store is None:
            app_store = JsonSettingsStore(
                Path(default_app_dir()) / "settings.json",
                {SETTINGS_NAMESPACE: default_preview_settings()},
            )
        self._app_store = app_store
        self._folders: list[str] = []
        self._folder_cache: dict[str, dict[str, Any]] = {}

    @property
    def app_store(self) -> JsonSettingsStore:
        return self._app_store

    def set_folders(self, folders: list[str]) -> None:
        cleaned: list[str] = []
        for folder in folders or []:
            text = str(folder or "").strip()
            if not text:
                continue
            cleaned.append(os.path.abspath(text))
        self._folders = cleaned
        self.reload_folders()

    def reload_folders(self) -> None:
        self._folder_cache.clear()

    def get(self, document: EditorDocument | None, key: str, default: Any) -> Any:
        dotted = f"{SETTINGS_NAMESPACE}.{key}"
        marker = object()
        folder = self._folder_for(document)
        if folder is not None:
            value = dot_get(self._folder_settings(folder), dotted, marker)
            if value is not marker:
                return value
        value = self._app_store.get(dotted, marker)
        if value is marker:
            return default
        return value

    def _folder_for(self, document: EditorDocument | None) -> str | None:
        file_path = getattr(document, "file_path", None) if document is not None else None
        if not file_path:
            return None
        path = os.path.abspath(str(file_path))
        best: str | None = None
        for folder in self._folders:
            try:
                if os.path.commonpath([folder, path]) != folder:
                    continue
            except ValueError:
                continue
            if best is None or len(folder) > len(best):
                best = folder
        return best

    def _folder_settings(self, folder: str) -> dict[str, Any]:
        cached = self._folder_cache.get(folder)
        if cached is not None:
            return cached
        path = Path(folder) / FOLDER_SETTINGS_FILENAME
        data: dict[str, Any] = {}
        if path.is_file():
            try:
                data = _read_json_object(path)
            except SettingsStoreError as exc:
                # Broken folder files fall back to the application scope.
                logger.warning("Ignoring folder settings: %s", exc)
                data = {}
        self._folder_cache[folder] = data
        return data
