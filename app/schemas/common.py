"""
Common Schemas

camelCase wire models and the {message, status, data} response envelope.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class DefaultResponse(BaseModel, Generic[T]):
    message: str
    status: bool = True
    data: Optional[T] = None


class CountResponse(CamelModel):
    count: int
