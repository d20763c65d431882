"""Write edited OME metadata back to OME-XML or OME-TIFF files."""

from __future__ import annotations

from pathlib import Path
import shutil

import tifffile

from omeeditor.logs import get_logger
from omeeditor.model.document import OmeDocument, SourceKind

logger = get_logger(__name__)


class OmeWriteError(RuntimeError):
    """Raised when output generation fails."""


def write_document(document: OmeDocument, output_path: str | Path) -> None:
    if document.tree is None:
        raise OmeWriteError("Metadata could not be parsed; the raw text cannot be saved")

    output = Path(output_path)
    try:
        if document.kind is SourceKind.TIFF:
            _write_tiff(document, output)
        else:
            output.write_bytes(document.tree.to_bytes())
    except (OSError, tifffile.TiffFileError, ValueError) as exc:
        raise OmeWriteError(f"Failed to write output file: {output}") from exc

    logger.info("Saved %s", output)
    document.path = output
    document.modified = False


def _write_tiff(document: OmeDocument, output: Path) -> None:
    if document.path is None:
        raise OmeWriteError("An OME-TIFF document needs its source image to be saved")
    if output.resolve() != document.path.resolve():
        shutil.copy2(document.path, output)
    xml = document.tree.to_bytes() if document.tree is not None else b""
    tifffile.tiffcomment(output, xml)
