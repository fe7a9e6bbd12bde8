"""Shared pydantic base for the camelCase JSON wire format."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON keys; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
