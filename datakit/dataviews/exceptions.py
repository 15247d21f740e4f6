from __future__ import annotations

from typing import Any


class DataViewError(Exception):
    """Base error of the data-view core.

    Carries a stable message key plus positional parameters; the text shown to
    callers is rendered by a :class:`~datakit.dataviews.translation.Translator`.
    """

    code = "datakit_error"
    status_code = 500
    message_key = "datakit.error"

    def __init__(self, message_key: str | None = None, parameters: dict[str, Any] | None = None, detail: str | None = None):
        self.message_key = message_key or type(self).message_key
        self.parameters = dict(parameters or {})
        self.detail = detail
        super().__init__(detail or self.message_key)

    def translate(self, translator) -> str:
        message = translator.translate(self.message_key, self.parameters)
        if self.detail:
            return f"{message} {self.detail}"
        return message


class DataSourceNotFound(DataViewError):
    code = "datakit_data_source_not_found"
    status_code = 404
    message_key = "datakit.data_source.not_found"


class BackendUnavailable(DataViewError):
    code = "datakit_backend_unavailable"
    status_code = 503
    message_key = "datakit.data_source.unavailable"


class RecordNotFound(DataViewError):
    code = "datakit_data_not_found"
    status_code = 404
    message_key = "datakit.data.not_found"

    @classmethod
    def with_id(cls, record_id: str) -> "RecordNotFound":
        return cls("datakit.data.not_found.with_id", {"id": str(record_id)})


class ActionForbidden(DataViewError):
    code = "datakit_action_forbidden"
    status_code = 403
    message_key = "datakit.action.forbidden"

    @classmethod
    def with_id(cls, record_id: str) -> "ActionForbidden":
        return cls("datakit.action.forbidden.with_id", {"id": str(record_id)})


class InvalidQuery(DataViewError):
    code = "datakit_invalid_query"
    status_code = 400
    message_key = "datakit.query.invalid"

    def __init__(self, detail: str):
        super().__init__(detail=detail)
