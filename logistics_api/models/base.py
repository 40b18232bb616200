"""
Response envelopes shared by every endpoint.
"""

from typing import Generic, TypeVar
from pydantic import BaseModel, Field

Model = TypeVar("Model", bound=BaseModel)


class ResponseModel(BaseModel, Generic[Model]):
    status_code: int = Field(..., description="HTTP status code echoed in the body")
    data: Model


class ListResponseModel(BaseModel, Generic[Model]):
    status_code: int = Field(..., description="HTTP status code echoed in the body")
    data: list[Model]
    records_per_page: int = Field(..., description="Page size used for this listing")
    total_count: int = Field(..., description="Total records matching the filters")
    offset: int = Field(default=0, description="Number of records skipped")
