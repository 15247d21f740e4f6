from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from datakit.core.deps import get_access_controller, get_service, get_translator
from datakit.db.session import get_db
from datakit.dataviews.access import AccessController
from datakit.dataviews.exceptions import ActionForbidden
from datakit.dataviews.query import Search, Sort
from datakit.dataviews.service import DataViewQueryService
from datakit.dataviews.translation import Translator
from datakit.schemas.dataview import DeletePayload, ViewQuery

router = APIRouter()


@router.get("")
def list_views(
    access: AccessController = Depends(get_access_controller),
    service: DataViewQueryService = Depends(get_service),
):
    return {"views": [{"id": item.id, "label": item.label} for item in service.list_views(access)]}


@router.get("/{view_id}/fields")
def view_fields(
    view_id: str,
    db: Session = Depends(get_db),
    access: AccessController = Depends(get_access_controller),
    service: DataViewQueryService = Depends(get_service),
):
    return {"fields": [item.to_dict() for item in service.fields(view_id, db, access)]}


@router.post("/{view_id}/query")
def query_view(
    view_id: str,
    payload: ViewQuery,
    db: Session = Depends(get_db),
    access: AccessController = Depends(get_access_controller),
    service: DataViewQueryService = Depends(get_service),
):
    sort = Sort(field=payload.sort.field, direction=payload.sort.direction) if payload.sort else None
    result = service.query(
        view_id,
        db,
        access,
        search=Search.from_value(payload.search),
        filters=[item.model_dump() for item in payload.filters],
        sort=sort,
        page=payload.page,
        per_page=payload.pageSize,
    )
    return result.to_dict()


@router.get("/{view_id}/data/{record_id}")
def view_item(
    view_id: str,
    record_id: str,
    db: Session = Depends(get_db),
    access: AccessController = Depends(get_access_controller),
    service: DataViewQueryService = Depends(get_service),
):
    return {"dataview_id": view_id, "data_id": record_id, "data": service.get_item(view_id, record_id, db, access)}


@router.delete("/{view_id}/data")
def delete_view_items(
    view_id: str,
    payload: DeletePayload,
    db: Session = Depends(get_db),
    access: AccessController = Depends(get_access_controller),
    service: DataViewQueryService = Depends(get_service),
    translator: Translator = Depends(get_translator),
):
    report = service.delete(view_id, [str(item) for item in payload.id], db, access)
    if report.ok:
        return {"id": report.deleted}
    errors = list(report.errors.items())
    forbidden = [exc for _, exc in errors if isinstance(exc, ActionForbidden)]
    headline = forbidden[0] if forbidden else errors[0][1]
    return JSONResponse(
        status_code=headline.status_code,
        content={
            "code": headline.code,
            "message": headline.translate(translator),
            "id": report.deleted,
            "errors": [
                {"id": record_id, "code": exc.code, "message": exc.translate(translator)}
                for record_id, exc in errors
            ],
        },
    )
