"""Shared request/response model configuration."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model exchanged with the CLI as camelCase JSON.

    Accepts snake_case field names too, for Python callers.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(CamelModel):
    """Acknowledgement with no payload."""

    success: bool = True
