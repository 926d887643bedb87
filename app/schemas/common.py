"""
Nexus Compliance - Common Schemas

Base model for request bodies that arrive in camelCase.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase keys as well as the snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
