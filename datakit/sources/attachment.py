from __future__ import annotations

from pathlib import Path

from sqlalchemy.orm import Session

from datakit.dataviews.exceptions import DataSourceNotFound
from datakit.models.attachment import Attachment

from ._sql import parse_int_id
from .csv_file import CsvDataSource


def _resolve_inside(media_root: str | Path, relative: str) -> Path | None:
    root = Path(media_root).resolve()
    candidate = (root / str(relative or "").lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    return candidate


def attachment_csv(
    db: Session,
    attachment_id: int,
    media_root: str | Path,
    delimiter: str = ",",
    quotechar: str = '"',
    escapechar: str | None = None,
) -> CsvDataSource:
    """A :class:`CsvDataSource` for the file stored with an attachment row."""
    parsed = parse_int_id(attachment_id)
    attachment = db.get(Attachment, parsed) if parsed is not None else None
    if attachment is None:
        raise DataSourceNotFound(detail=f"The attachment ID ({attachment_id}) is not found.")
    path = _resolve_inside(media_root, attachment.storage_path)
    if path is None:
        raise DataSourceNotFound(detail=f"The attachment ID ({attachment_id}) is not found.")
    return CsvDataSource.open(path, delimiter=delimiter, quotechar=quotechar, escapechar=escapechar)
