from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class Photo(Base):
    """User photo stored as a base64 data URI."""

    __tablename__ = "photos"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    image_data: Mapped[str] = mapped_column(Text, nullable=False)  # data:image/...;base64,...
    mime_type: Mapped[str] = mapped_column(String(32), nullable=False)
    # At most one per user; kept by the unset-then-set update in the photos router
    is_profile_picture: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("idx_photos_user_order", "user_id", "is_profile_picture", "upload_date"),)

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, user_id={self.user_id}, is_profile_picture={self.is_profile_picture})>"
