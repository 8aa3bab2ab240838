import uuid
from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin, SoftDeleteMixin, AuthorshipMixin

class Verse(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin, AuthorshipMixin):
    __tablename__ = "verses"
    hymn_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hymns.id"), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    hymn = relationship("Hymn", back_populates="verses")

class Chorus(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin, AuthorshipMixin):
    __tablename__ = "choruses"
    hymn_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("hymns.id"), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    hymn = relationship("Hymn", back_populates="choruses")
