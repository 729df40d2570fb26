"""Pydantic models for group payloads."""

from typing import List, Optional

from pydantic import Field

from .base import CamelModel


class AddUsersToGroupRequest(CamelModel):
    user_ids: List[int] = Field(..., examples=[[3, 4, 5]])
    added_by: Optional[int] = Field(None, description="Recorded as the adding user instead of the caller")


class ChangeGroupOwnerRequest(CamelModel):
    """Either ``newOwnerId`` or ``newOwnerUsername`` must be given."""

    new_owner_id: Optional[int] = Field(None, examples=[7])
    new_owner_username: Optional[str] = Field(None, examples=["jdoe"])
    changed_by: Optional[int] = None


class RemoveGroupMembersRequest(CamelModel):
    user_ids: List[int] = Field(..., examples=[[3]])


class DeleteGroupsRequest(CamelModel):
    group_ids: List[int] = Field(..., examples=[[10, 11]])


class GroupCreate(CamelModel):
    """Schema for creating a group.  ``ownerId`` defaults to the caller."""

    name: str = Field(..., min_length=2, max_length=100, examples=["Field-Team"])
    status: str = Field("active", examples=["active"])
    owner_id: Optional[int] = Field(None, examples=[2])
    description: Optional[str] = Field(None, max_length=5000)
    email: Optional[str] = Field(None, examples=["field-team@example.com"])


class GroupUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    status: Optional[str] = None
    owner_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=5000)
    email: Optional[str] = None
