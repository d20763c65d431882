"""OME-XML and OME-TIFF loading helpers."""

from __future__ import annotations

from pathlib import Path

import tifffile

from omeeditor.logs import get_logger
from omeeditor.model.document import OmeDocument, SourceKind
from omeeditor.ome.tree import AttributedTree, OmeParseError

logger = get_logger(__name__)

OME_NAMESPACE = "http://www.openmicroscopy.org/Schemas/OME/2016-06"

TIFF_SIGNATURES = (b"II*\x00", b"MM\x00*", b"II+\x00", b"MM\x00+")
HEADER_SIZE = 8


class OmeLoadError(RuntimeError):
    """Raised when a file holds no readable OME metadata."""


def is_tiff_header(header: bytes) -> bool:
    return header[:4] in TIFF_SIGNATURES


def is_xml_header(header: bytes) -> bool:
    text = header.decode("latin-1").lstrip("\xef\xbb\xbf").strip()
    return text.startswith("<?xml") or text.startswith("<OME")


def load_document(path: str | Path) -> OmeDocument:
    source_path = Path(path)
    if not source_path.is_file():
        raise OmeLoadError(f"File not found: {source_path}")

    try:
        with source_path.open("rb") as handle:
            header = handle.read(HEADER_SIZE)
    except OSError as exc:
        raise OmeLoadError(f"Cannot read file: {source_path}") from exc

    if is_tiff_header(header):
        text = _read_tiff_description(source_path)
        kind = SourceKind.TIFF
    elif is_xml_header(header):
        try:
            data = source_path.read_bytes()
        except OSError as exc:
            raise OmeLoadError(f"Cannot read file: {source_path}") from exc
        text = _decode_xml(data, source_path)
        kind = SourceKind.XML
    else:
        raise OmeLoadError(f"Not an OME-XML or OME-TIFF file: {source_path}")

    if text is None:
        document = OmeDocument(
            path=source_path,
            kind=kind,
            raw_text=data.decode("utf-8-sig", errors="replace"),
            tree=None,
        )
    else:
        document = document_from_text(text, path=source_path, kind=kind)
    logger.info("Loaded %s (%s%s)", source_path, kind.value, ", raw" if document.is_raw else "")
    return document


def document_from_text(
    text: str,
    path: Path | None = None,
    kind: SourceKind = SourceKind.XML,
) -> OmeDocument:
    """Parse ``text``; an unparseable document is kept as raw text."""
    try:
        tree = AttributedTree.from_string(text)
    except OmeParseError as exc:
        logger.warning("Metadata parsing failed for %s: %s", path or "text", exc)
        tree = None
    return OmeDocument(path=path, kind=kind, raw_text=text, tree=tree)


def new_document() -> OmeDocument:
    text = f'<OME xmlns="{OME_NAMESPACE}"/>'
    return OmeDocument(
        path=None,
        kind=SourceKind.XML,
        raw_text=text,
        tree=AttributedTree.from_string(text),
    )


def _read_tiff_description(path: Path) -> str:
    try:
        with tifffile.TiffFile(path) as tif:
            description = tif.pages[0].description
    except (tifffile.TiffFileError, OSError, IndexError) as exc:
        raise OmeLoadError(f"Failed to read TIFF header: {path}") from exc

    if not description:
        raise OmeLoadError(f"TIFF file has no image description: {path}")
    return description


def _decode_xml(data: bytes, path: Path) -> str | None:
    """Strict UTF-8; None means the file is shown raw instead of parsed."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        logger.warning("%s is not valid UTF-8, showing raw text: %s", path, exc)
        return None
