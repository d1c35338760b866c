import logging
import os
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

from gutter_preview.preview import activate
from gutter_preview.services.image_probe import QtImageProber
from gutter_preview.services.image_references import ImageReferenceProvider
from gutter_preview.settings_store import PreviewConfiguration, SettingsStoreError
from gutter_preview.ui.decorations import GutterDecorationRenderer
from gutter_preview.ui.editor_host import QtEditorHost
from gutter_preview.ui.main_window import PreviewMainWindow


VERBOSE_ARG = "--verbose"
WORKSPACE_ARG = "--workspace"


def _split_startup_args(argv: list[str]) -> tuple[list[str], str | None, bool]:
    files: list[str] = []
    workspace: str | None = None
    verbose = False
    it = iter(argv)
    for arg in it:
        if arg == VERBOSE_ARG:
            verbose = True
            continue
        if arg == WORKSPACE_ARG:
            workspace = next(it, None)
            continue
        if arg.startswith(WORKSPACE_ARG + "="):
            workspace = arg.split("=", 1)[1]
            continue
        files.append(arg)
    return files, workspace, verbose


def _canonical_existing_dir(path_value: str | Path | None) -> str | None:
    text = str(path_value or "").strip()
    if not text:
        return None
    candidate = Path(text).expanduser()
    if not candidate.is_dir():
        return None
    try:
        return str(candidate.resolve())
    except Exception:
        return str(candidate)


def _load_configuration() -> PreviewConfiguration:
    config = PreviewConfiguration()
    try:
        config.app_store.load()
    except SettingsStoreError as exc:
        logging.getLogger(__name__).warning("Using default settings: %s", exc)
    return config


if __name__ == "__main__":
    cli_files, cli_workspace, verbose = _split_startup_args(sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv[:1])
    app.setApplicationName("Image Preview")

    workspace = _canonical_existing_dir(cli_workspace) or _canonical_existing_dir(os.getcwd())
    config = _load_configuration()
    host = QtEditorHost(app)
    provider = ImageReferenceProvider()
    window = PreviewMainWindow(host)

    preview = activate(
        host=host,
        provider=provider,
        renderer=GutterDecorationRenderer(),
        prober=QtImageProber(),
        config=config,
        parent=app,
    )
    host.set_hover_provider(preview.hover.build_hover)
    preview.coordinator.statusMessage.connect(lambda text: window.statusBar().showMessage(text, 4000))
    host.workspaceFoldersChanged.connect(lambda: config.set_folders(host.workspace_folders()))
    host.set_workspace_folders([workspace] if workspace else [])
    config.set_folders(host.workspace_folders())
    app.aboutToQuit.connect(preview.deactivate)
    app.aboutToQuit.connect(provider.close)

    for path in cli_files:
        window.open_file(path)
    if not cli_files:
        window.new_file()

    window.show()
    sys.exit(app.exec())
