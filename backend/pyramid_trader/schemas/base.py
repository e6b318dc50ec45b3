"""Shared base for schemas persisted with camelCase keys"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on disk (positions.json compatible)"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
