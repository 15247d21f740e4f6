"""View definitions read from a JSON file.

The file holds a list of objects: ``{"id", "label"?, "type", ...options}``.
Supported types: ``content``, ``users``, ``form``, ``csv``, ``attachment-csv``.
"""

from __future__ import annotations

import codecs
import json
from pathlib import Path
from typing import Any, Callable

from datakit.dataviews.repository import DataSourceDefinition, SourceContext

from ._sql import parse_int_id
from .attachment import attachment_csv
from .content import ContentDataSource
from .csv_file import CsvDataSource
from .forms import FormDataSource
from .users import UserDataSource


def _as_tuple(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def _require(options: dict[str, Any], key: str, view_id: str):
    if options.get(key) in (None, ""):
        raise ValueError(f'View "{view_id}" requires option "{key}"')
    return options[key]


def _require_int(options: dict[str, Any], key: str, view_id: str) -> int:
    parsed = parse_int_id(_require(options, key, view_id))
    if parsed is None:
        raise ValueError(f'View "{view_id}" option "{key}" must be an integer')
    return parsed


def _single_char(options: dict[str, Any], key: str, default: str | None, view_id: str) -> str | None:
    value = options.get(key) or default
    if value is not None and (not isinstance(value, str) or len(value) != 1):
        raise ValueError(f'View "{view_id}" option "{key}" must be a single character')
    return value


def _csv_options(options: dict[str, Any], view_id: str) -> dict[str, Any]:
    return {
        "delimiter": _single_char(options, "delimiter", ",", view_id),
        "quotechar": _single_char(options, "quotechar", '"', view_id),
        "escapechar": _single_char(options, "escapechar", None, view_id),
    }


def _encoding(options: dict[str, Any], view_id: str) -> str:
    encoding = str(options.get("encoding") or "utf-8")
    try:
        codecs.lookup(encoding)
    except LookupError:
        raise ValueError(f'View "{view_id}" uses unknown encoding "{encoding}"')
    return encoding


def _content(view_id: str, options: dict[str, Any]):
    post_types = _as_tuple(options.get("post_types"))
    statuses = _as_tuple(options.get("statuses", ["publish"]))

    def factory(context: SourceContext):
        return ContentDataSource.create(
            context.db,
            context.access,
            post_types=post_types,
            statuses=statuses,
            site_url=context.settings.SITE_URL,
            view_id=context.view_id,
        )

    return factory


def _users(view_id: str, options: dict[str, Any]):
    roles = _as_tuple(options.get("roles"))
    return lambda context: UserDataSource.create(context.db, context.access, roles=roles, view_id=context.view_id)


def _form(view_id: str, options: dict[str, Any]):
    form_id = _require_int(options, "form_id", view_id)
    return lambda context: FormDataSource.for_form(context.db, context.access, form_id, view_id=context.view_id)


def _csv(view_id: str, options: dict[str, Any]):
    path = str(_require(options, "path", view_id))
    csv_options = _csv_options(options, view_id)
    encoding = _encoding(options, view_id)
    return lambda context: CsvDataSource.open(path, encoding=encoding, **csv_options)


def _attachment_csv(view_id: str, options: dict[str, Any]):
    attachment_id = _require_int(options, "attachment_id", view_id)
    csv_options = _csv_options(options, view_id)
    return lambda context: attachment_csv(context.db, attachment_id, context.settings.MEDIA_ROOT, **csv_options)


DEFINITION_TYPES: dict[str, Callable[[str, dict[str, Any]], Callable[[SourceContext], Any]]] = {
    "content": _content,
    "users": _users,
    "form": _form,
    "csv": _csv,
    "attachment-csv": _attachment_csv,
}


def definition_from_config(raw: dict[str, Any]) -> DataSourceDefinition:
    if not isinstance(raw, dict):
        raise ValueError("View definition must be an object")
    view_id = str(raw.get("id") or "").strip()
    if not view_id:
        raise ValueError("View definition requires an id")
    kind = str(raw.get("type") or "").strip()
    builder = DEFINITION_TYPES.get(kind)
    if builder is None:
        raise ValueError(f'Unknown view type "{kind}" for view "{view_id}"')
    options = {key: value for key, value in raw.items() if key not in ("id", "label", "type")}
    label = str(raw.get("label") or view_id)
    return DataSourceDefinition(id=view_id, label=label, factory=builder(view_id, options))


def load_definitions(path: str | Path) -> list[DataSourceDefinition]:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of view definitions")
    return [definition_from_config(item) for item in raw]
