from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin, SoftDeleteMixin, AuthorshipMixin

class Category(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin, AuthorshipMixin):
    __tablename__ = "categories"
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(220), unique=True, nullable=False)

    hymns = relationship("Hymn", back_populates="category")
