"""Pydantic models for catalog section payloads."""

from typing import List, Optional

from pydantic import Field

from .base import CamelModel


class SectionCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100, examples=["Office furniture"])
    description: Optional[str] = None
    owner_id: Optional[int] = None
    status: str = Field("active", examples=["active"])


class SectionUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    owner_id: Optional[int] = None
    status: Optional[str] = None


class DeleteSectionsRequest(CamelModel):
    section_ids: List[int] = Field(..., examples=[[1, 2]])
