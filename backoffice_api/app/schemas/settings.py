"""Pydantic model for writing a runtime setting."""

from typing import Any, Literal

from pydantic import BaseModel


class SettingWrite(BaseModel):
    value: Any
    type: Literal["string", "int", "float", "bool"] = "string"
