"""Entry point for the OME metadata editor."""

from __future__ import annotations

import sys
from typing import Sequence

from PySide6.QtWidgets import QApplication

from omeeditor.config import ConfigError, load_config
from omeeditor.logs import setup_logging
from omeeditor.ui.main_window import MainWindow


def main(argv: Sequence[str] | None = None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as exc:
        print(f"omeeditor: {exc}", file=sys.stderr)
        return 2

    logger = setup_logging(config.log_level, config.log_to_file, config.log_folder)
    logger.info("Starting OME metadata editor")

    app = QApplication.instance() or QApplication(sys.argv[:1])
    window = MainWindow(config)
    window.show()
    if config.open_path is not None:
        window.open_path(config.open_path)
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
