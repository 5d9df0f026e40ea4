"""Shared pydantic base for the pipeline's camelCase JSON surface."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Fields are snake_case in Python and camelCase on the wire.

    Requests accept either spelling; responses are serialized by alias.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
