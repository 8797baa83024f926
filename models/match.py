from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


def canonical_pair(a: int, b: int) -> tuple[int, int]:
    """Order an undirected pair so the smaller id comes first."""
    return (a, b) if a < b else (b, a)


class Match(Base):
    """Mutual positive like, stored once per pair with user1_id < user2_id."""

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user1_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user2_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_matches_pair"),
        CheckConstraint("user1_id < user2_id", name="chk_match_canonical"),
    )

    def other(self, user_id: int) -> int:
        return self.user2_id if user_id == self.user1_id else self.user1_id

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, user1_id={self.user1_id}, user2_id={self.user2_id})>"
