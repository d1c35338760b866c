from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


SETTINGS_NAMESPACE = "gutterpreview"
DEFAULT_MAX_HEIGHT = 100


class PreviewSettingsDict(TypedDict, total=False):
    sourceFolder: str
    imagePreviewMaxHeight: int
    showImagePreviewOnGutter: bool
    showUnderline: bool


def default_preview_settings() -> PreviewSettingsDict:
    return {
        "sourceFolder": "src",
        "imagePreviewMaxHeight": DEFAULT_MAX_HEIGHT,
        "showImagePreviewOnGutter": True,
        "showUnderline": True,
    }


def coerce_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"1", "true", "yes", "on"}:
            return True
        if text in {"0", "false", "no", "off"}:
            return False
    return fallback


def coerce_max_height(value: Any) -> int:
    # Accepts numeric strings such as "120".
    try:
        height = int(float(value))
    except Exception:
        return DEFAULT_MAX_HEIGHT
    if height < 0:
        return DEFAULT_MAX_HEIGHT
    return height


def normalize_preview_settings(raw: Any) -> PreviewSettingsDict:
    defaults = default_preview_settings()
    data = dict(defaults)
    if isinstance(raw, dict):
        for key, value in raw.items():
            data[str(key)] = value

    source_folder = str(data.get("sourceFolder") or "").strip() or defaults["sourceFolder"]

    return {
        "sourceFolder": source_folder,
        "imagePreviewMaxHeight": coerce_max_height(data.get("imagePreviewMaxHeight")),
        "showImagePreviewOnGutter": coerce_bool(
            data.get("showImagePreviewOnGutter"), defaults["showImagePreviewOnGutter"]
        ),
        "showUnderline": coerce_bool(data.get("showUnderline"), defaults["showUnderline"]),
    }


@dataclass(slots=True)
class PreviewSettings:
    source_folder: str
    image_preview_max_height: int
    show_image_preview_on_gutter: bool
    show_underline: bool

    @classmethod
    def from_mapping(cls, data: Any) -> "PreviewSettings":
        n = normalize_preview_settings(data)
        return cls(
            source_folder=str(n["sourceFolder"]),
            image_preview_max_height=int(n["imagePreviewMaxHeight"]),
            show_image_preview_on_gutter=bool(n["showImagePreviewOnGutter"]),
            show_underline=bool(n["showUnderline"]),
        )


def read_preview_settings(config: Any, document: Any) -> PreviewSettings:
    """Read every preview key for ``document`` from a configuration source."""
    defaults = default_preview_settings()
    raw = {key: config.get(document, key, default) for key, default in defaults.items()}
    return PreviewSettings.from_mapping(raw)
