from pydantic import BaseModel, Field
from typing import Any, List, Optional, Union

class FilterClause(BaseModel):
    field: str
    # Checked by the query model so that unknown operators answer 400 like other bad queries.
    operator: str
    value: Any = None


class SortClause(BaseModel):
    field: str
    direction: str = "asc"


class ViewQuery(BaseModel):
    search: Optional[str] = None
    filters: List[FilterClause] = []
    sort: Optional[SortClause] = None
    page: Optional[int] = None
    pageSize: Optional[int] = None


class DeletePayload(BaseModel):
    id: List[Union[int, str]] = Field(min_length=1)
