from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from datakit.db.session import Base
from datakit.models.common import IntIdMixin, TimestampMixin


class Post(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "posts"
    post_type: Mapped[str] = mapped_column(String(20), nullable=False, default="post", index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="publish", index=True)  # publish|draft|pending|private|trash
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    excerpt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    slug: Mapped[str] = mapped_column(String(200), nullable=False, default="", index=True)
    author_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    parent_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    menu_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    password: Mapped[str] = mapped_column(String(255), nullable=False, default="")
