import uuid
from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin, SoftDeleteMixin, AuthorshipMixin

class Hymn(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin, AuthorshipMixin):
    __tablename__ = "hymns"
    number: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    category_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("categories.id"), nullable=False, index=True)
    author: Mapped[str | None] = mapped_column(String(200), nullable=True)
    language: Mapped[str | None] = mapped_column(String(50), nullable=True)
    version: Mapped[str | None] = mapped_column(String(50), nullable=True)

    category = relationship("Category", back_populates="hymns")
    verses = relationship("Verse", back_populates="hymn", order_by="Verse.order")
    choruses = relationship("Chorus", back_populates="hymn", order_by="Chorus.order")
