"""Shared pydantic configuration for request bodies."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase keys from clients and snake_case from code."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }
