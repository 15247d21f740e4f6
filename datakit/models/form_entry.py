from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from datakit.db.session import Base
from datakit.models.common import IntIdMixin, TimestampMixin


class FormEntry(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "form_entries"
    form_id: Mapped[int] = mapped_column(Integer, ForeignKey("forms.id", ondelete="CASCADE"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)  # active|spam|trash
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    source_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")


class FormEntryValue(Base, IntIdMixin):
    __tablename__ = "form_entry_values"
    entry_id: Mapped[int] = mapped_column(Integer, ForeignKey("form_entries.id", ondelete="CASCADE"), index=True, nullable=False)
    field_key: Mapped[str] = mapped_column(String(80), index=True, nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
