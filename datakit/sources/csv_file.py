from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path

from datakit.dataviews.data_source import config_id
from datakit.dataviews.exceptions import BackendUnavailable
from datakit.dataviews.query import DataQuery

from .memory import MemoryQueryMixin, MemoryTable

_LOG = logging.getLogger("datakit.sources.csv")


def _unique_headers(header: list[str]) -> list[str]:
    keys: list[str] = []
    for index, raw in enumerate(header, start=1):
        base = str(raw or "").strip() or f"column_{index}"
        key = base
        suffix = 2
        while key in keys:
            key = f"{base}_{suffix}"
            suffix += 1
        keys.append(key)
    return keys


def read_csv_table(path: str | Path, *, delimiter: str, quotechar: str, escapechar: str | None, encoding: str) -> MemoryTable:
    with open(path, newline="", encoding=encoding) as handle:
        reader = csv.reader(handle, delimiter=delimiter, quotechar=quotechar, escapechar=escapechar)
        header = next(reader, None)
        if header is None:
            return MemoryTable(fields=(), rows=())
        keys = _unique_headers(header)
        labels = {key: (str(raw or "").strip() or key) for key, raw in zip(keys, header)}
        rows = []
        for number, values in enumerate(reader, start=1):
            if not any(str(value).strip() for value in values):
                continue
            padded = list(values) + [""] * (len(keys) - len(values))
            rows.append((str(number), dict(zip(keys, padded))))
    return MemoryTable.build(rows, labels)


@dataclass(frozen=True)
class CsvDataSource(MemoryQueryMixin):
    """Read-only data source over a CSV file; ids are 1-based data row numbers."""

    path: str
    table: MemoryTable
    delimiter: str = ","
    quotechar: str = '"'
    escapechar: str | None = None
    encoding: str = "utf-8"
    query: DataQuery = field(default_factory=DataQuery)

    @classmethod
    def open(
        cls,
        path: str | Path,
        delimiter: str = ",",
        quotechar: str = '"',
        escapechar: str | None = None,
        encoding: str = "utf-8",
    ) -> "CsvDataSource":
        try:
            table = read_csv_table(path, delimiter=delimiter, quotechar=quotechar, escapechar=escapechar, encoding=encoding)
        except (OSError, UnicodeDecodeError, LookupError, csv.Error) as exc:
            _LOG.warning("csv data source unavailable path=%s error=%s", path, exc)
            raise BackendUnavailable(detail=f'CSV file "{Path(path).name}" cannot be read.') from exc
        return cls(
            path=str(path),
            table=table,
            delimiter=delimiter,
            quotechar=quotechar,
            escapechar=escapechar,
            encoding=encoding,
        )

    @property
    def id(self) -> str:
        return config_id(
            "csv",
            {
                "path": self.path,
                "delimiter": self.delimiter,
                "quotechar": self.quotechar,
                "escapechar": self.escapechar,
            },
        )
