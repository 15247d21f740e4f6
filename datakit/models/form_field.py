from sqlalchemy import ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from datakit.db.session import Base
from datakit.models.common import IntIdMixin

class FormField(Base, IntIdMixin):
    __tablename__ = "form_fields"
    form_id: Mapped[int] = mapped_column(Integer, ForeignKey("forms.id", ondelete="CASCADE"), index=True, nullable=False)
    key: Mapped[str] = mapped_column(String(80), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="text")
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Composite fields: [{"key": "3.1", "label": "First"}, ...]
    inputs: Mapped[list | None] = mapped_column(JSON, nullable=True)
