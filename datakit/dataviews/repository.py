from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable

from .access import AccessController
from .data_source import DataSource
from .exceptions import DataSourceNotFound

_LOG = logging.getLogger("datakit.repository")


@dataclass(frozen=True)
class SourceContext:
    """Per-request collaborators a data source factory may need."""

    db: Any
    access: AccessController
    settings: Any
    view_id: str | None = None


@dataclass(frozen=True)
class DataSourceDefinition:
    id: str
    label: str
    factory: Callable[[SourceContext], DataSource]

    def build(self, context: SourceContext) -> DataSource:
        return self.factory(context)


class DataSourceRepository:
    def __init__(self, definitions: list[DataSourceDefinition] | None = None):
        self._definitions: dict[str, DataSourceDefinition] = {}
        self._lock = Lock()
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: DataSourceDefinition, replace: bool = False) -> None:
        with self._lock:
            if definition.id in self._definitions and not replace:
                raise ValueError(f'Data source "{definition.id}" is already registered')
            self._definitions[definition.id] = definition
        _LOG.info("view registered id=%s label=%s", definition.id, definition.label)

    def unregister(self, view_id: str) -> None:
        with self._lock:
            self._definitions.pop(view_id, None)

    def has(self, view_id: str) -> bool:
        return view_id in self._definitions

    def get(self, view_id: str) -> DataSourceDefinition:
        definition = self._definitions.get(view_id)
        if definition is None:
            raise DataSourceNotFound(detail=f'Unknown view "{view_id}".')
        return definition

    def resolve(self, view_id: str, context: SourceContext) -> DataSource:
        return self.get(view_id).build(context)

    def all(self) -> list[DataSourceDefinition]:
        return list(self._definitions.values())
