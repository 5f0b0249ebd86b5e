"""Shared pydantic base for request/response bodies.

The JSON API speaks camelCase (projectId, bodyMarkdown); Python code uses
snake_case. Field aliases bridge the two and both spellings are accepted
on input.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
