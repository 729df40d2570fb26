"""
Pydantic models for user payloads.

Passwords are accepted on creation and login only and are never
returned by the API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .base import CamelModel


class UserCreate(CamelModel):
    """Schema for creating a user account from the admin panel."""

    username: str = Field(..., min_length=2, max_length=64, examples=["jdoe"])
    email: Optional[str] = Field(None, examples=["jdoe@example.com"])
    first_name: Optional[str] = Field(None, examples=["John"])
    last_name: Optional[str] = Field(None, examples=["Doe"])
    password: Optional[str] = Field(None, min_length=8, examples=["strongpassword"])
    role_id: int = Field(3, examples=[3])
    is_staff: bool = False
    account_status: str = Field("active", examples=["active"])


class UserLogin(BaseModel):
    username: str
    password: str


class AddUserToGroupsRequest(CamelModel):
    group_ids: List[int] = Field(..., examples=[[1, 2]])


class RemoveUserFromGroupsRequest(CamelModel):
    group_ids: List[int] = Field(..., examples=[[1, 2]])


class DeleteUsersRequest(CamelModel):
    user_ids: List[int] = Field(..., examples=[[4, 5]])


class UserUpdate(CamelModel):
    """Partial update of a user; omitted fields are left unchanged."""

    username: Optional[str] = Field(None, min_length=2, max_length=64)
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_id: Optional[int] = None
    is_staff: Optional[bool] = None
    account_status: Optional[str] = Field(None, examples=["disabled"])
