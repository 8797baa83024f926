from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class Like(Base):
    """Directed like (is_like=True) or dislike (is_like=False) from liker to liked."""

    __tablename__ = "likes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    liker_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    liked_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_like: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("liker_id", "liked_id", name="uq_likes_pair"),
        CheckConstraint("liker_id <> liked_id", name="chk_like_no_self"),
    )

    def __repr__(self) -> str:
        return f"<Like(liker_id={self.liker_id}, liked_id={self.liked_id}, is_like={self.is_like})>"
