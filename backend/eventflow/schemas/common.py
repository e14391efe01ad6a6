"""
Shared base for API schemas.

The JSON surface is camelCase (``seatsBooked``, ``bookingStatus``); Python code
uses snake_case field names. Both spellings are accepted on input.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(APIModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(APIModel):
    success: bool = False
    message: str
