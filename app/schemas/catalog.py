from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class LyricIn(BaseModel):
    text: str = Field(min_length=1)
    order: Optional[int] = Field(default=None, ge=1)


class LyricUpdate(BaseModel):
    text: Optional[str] = Field(default=None, min_length=1)
    order: Optional[int] = Field(default=None, ge=1)


class LyricOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    hymn_id: UUID
    text: str
    order: int
    deleted_at: Optional[datetime] = None


class HymnCreate(BaseModel):
    number: Optional[int] = Field(default=None, ge=1)
    title: str = Field(min_length=1, max_length=300)
    category_id: UUID
    author: Optional[str] = None
    language: Optional[str] = None
    version: Optional[str] = None
    verses: List[LyricIn] = []
    choruses: List[LyricIn] = []


class HymnUpdate(BaseModel):
    number: Optional[int] = Field(default=None, ge=1)
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    category_id: Optional[UUID] = None
    author: Optional[str] = None
    language: Optional[str] = None
    version: Optional[str] = None


class HymnOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: Optional[int] = None
    title: str
    slug: str
    category_id: UUID
    author: Optional[str] = None
    language: Optional[str] = None
    version: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    category: Optional[CategoryOut] = None
    verse_count: Optional[int] = None


class HymnDetailOut(HymnOut):
    verses: List[LyricOut] = []
    choruses: List[LyricOut] = []


class LyricSearchHit(BaseModel):
    id: UUID
    kind: str
    hymn_id: UUID
    hymn_number: Optional[int] = None
    hymn_title: str
    order: int
    text: str


class CategoryStatsRow(BaseModel):
    id: str
    name: str
    slug: str
    hymn_count: int


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    role: str
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    role: Optional[str] = Field(default=None, pattern="^(Admin|User)$")


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: Optional[UUID] = None
    entity_type: str
    entity_id: str
    action: str
    description: Optional[str] = None
    details: dict = {}
    created_at: Optional[datetime] = None
