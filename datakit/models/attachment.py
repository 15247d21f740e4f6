from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from datakit.db.session import Base
from datakit.models.common import IntIdMixin, TimestampMixin


class Attachment(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "attachments"
    file_name: Mapped[str] = mapped_column(String(300), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(150), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Relative to MEDIA_ROOT.
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
