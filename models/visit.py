"""Profile visit model."""

from datetime import date, datetime

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class ProfileVisit(Base):
    """One row per (visitor, visited, calendar day); visited_at holds the latest view."""

    __tablename__ = "profile_visits"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    visitor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    visited_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    visit_date: Mapped[date] = mapped_column(Date, server_default=func.current_date(), nullable=False)
    visited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("visitor_id", "visited_id", "visit_date", name="uq_profile_visits_daily"),
        Index("idx_profile_visits_visited_at", "visited_id", "visited_at"),
    )

    def __repr__(self) -> str:
        return f"<ProfileVisit(visitor_id={self.visitor_id}, visited_id={self.visited_id}, date={self.visit_date})>"
