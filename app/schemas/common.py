"""
Common schemas used across the API.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes snake_case fields as camelCase and accepts either on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Error response format."""

    error: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
