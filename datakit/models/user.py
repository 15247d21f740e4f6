from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from datakit.db.session import Base
from datakit.models.common import IntIdMixin, utcnow


class User(Base, IntIdMixin):
    __tablename__ = "users"
    login: Mapped[str] = mapped_column(String(60), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(250), nullable=False, default="")
    nicename: Mapped[str] = mapped_column(String(50), nullable=False, default="", index=True)
    url: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    status: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="SUBSCRIBER", index=True)  # ADMIN|EDITOR|AUTHOR|SUBSCRIBER
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class UserMeta(Base, IntIdMixin):
    __tablename__ = "user_meta"
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    meta_key: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    meta_value: Mapped[str | None] = mapped_column(Text, nullable=True)
