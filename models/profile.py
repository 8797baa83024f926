from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base

if TYPE_CHECKING:
    from models.user import User

GENDERS = ("homme", "femme")
ORIENTATIONS = ("hetero", "homo", "bi")


class Profile(Base):
    """Dating profile, one per user."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    biography: Mapped[str | None] = mapped_column(Text, nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(8), nullable=True)  # homme, femme
    sexual_orientation: Mapped[str | None] = mapped_column(String(8), nullable=True)  # hetero, homo, bi
    interests: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fame_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="profile")

    __table_args__ = (
        CheckConstraint("gender IN ('homme','femme')", name="chk_profile_gender"),
        CheckConstraint("sexual_orientation IN ('hetero','homo','bi')", name="chk_profile_orientation"),
        CheckConstraint("fame_rating >= 0", name="chk_profile_fame_non_negative"),
    )

    @property
    def is_complete(self) -> bool:
        """Age and gender are the minimum needed to browse or be browsed."""
        return self.age is not None and self.gender is not None

    def __repr__(self) -> str:
        return f"<Profile(user_id={self.user_id}, age={self.age}, gender={self.gender})>"
