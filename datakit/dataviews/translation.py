from __future__ import annotations

import re
from typing import Any

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "datakit.action.forbidden": "Action is forbidden.",
        "datakit.action.forbidden.with_id": 'Action is forbidden for "[id]".',
        "datakit.data_source.not_found": "DataSource not found.",
        "datakit.data_source.unavailable": "DataSource is unavailable.",
        "datakit.data.not_found": "Data not found.",
        "datakit.data.not_found.with_id": 'Data for key "[id]" not found.',
        "datakit.query.invalid": "Invalid query.",
        "datakit.error": "Unexpected data view error.",
    },
    "ru": {
        "datakit.action.forbidden": "Действие запрещено.",
        "datakit.action.forbidden.with_id": 'Действие запрещено для "[id]".',
        "datakit.data_source.not_found": "Источник данных не найден.",
        "datakit.data_source.unavailable": "Источник данных недоступен.",
        "datakit.data.not_found": "Данные не найдены.",
        "datakit.data.not_found.with_id": 'Данные для ключа "[id]" не найдены.',
        "datakit.query.invalid": "Некорректный запрос.",
        "datakit.error": "Непредвиденная ошибка представления данных.",
    },
}

_PLACEHOLDER_RE = re.compile(r"\[([A-Za-z0-9_]+)\]")


class Translator:
    def __init__(self, locale: str = "en", catalogs: dict[str, dict[str, str]] | None = None):
        self.locale = locale
        self.catalogs = catalogs if catalogs is not None else MESSAGES

    def translate(self, message: str, parameters: dict[str, Any] | None = None) -> str:
        catalog = self.catalogs.get(self.locale) or self.catalogs.get("en", {})
        text = catalog.get(message, message)
        return replace_parameters(text, parameters or {})


def replace_parameters(text: str, parameters: dict[str, Any]) -> str:
    """Substitutes ``[name]`` placeholders; unknown placeholders are kept."""

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name not in parameters:
            return match.group(0)
        return str(parameters[name])

    return _PLACEHOLDER_RE.sub(_sub, text)
