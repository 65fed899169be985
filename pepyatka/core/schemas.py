"""Shared pydantic base for request and response bodies.

Wire format is camelCase. Models accept either camelCase or snake_case on
input and are dumped by alias on output.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    """Generic acknowledgement."""

    message: str
