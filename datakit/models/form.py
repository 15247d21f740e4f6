from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from datakit.db.session import Base
from datakit.models.common import IntIdMixin, TimestampMixin

class Form(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "forms"
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
