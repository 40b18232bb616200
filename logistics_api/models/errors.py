from typing import Any, Optional
from pydantic import BaseModel, Field


class HTTPDetail(BaseModel):
    type: str = Field(description="Error type, e.g. RESOURCE_CONFLICT")
    message: str = Field(description="Human readable description of this error")
    resource: Optional[str] = Field(default=None, description="Resource the error refers to (route, driver, vehicle)")
    field: Optional[str] = Field(default=None, description="Offending field, if any")
    value: Optional[Any] = Field(default=None, description="Offending value, if any")


class HTTPException(BaseModel):
    """Error body returned for every non-2xx response."""

    status_code: int = Field(description="HTTP status code of the error")
    title: str = Field(description="Short title describing the error")
    detail: str = Field(description="Detailed description of the error")
    errors: list[HTTPDetail] = Field(description="List of detailed error information")

    class Config:
        json_schema_extra = {
            "example": {
                "status_code": 409,
                "title": "Conflict",
                "detail": "Driver already has an active route: RT-20240115-001",
                "errors": [
                    {
                        "type": "RESOURCE_CONFLICT",
                        "message": "Driver already has an active route: RT-20240115-001",
                        "resource": "driver",
                        "field": "driver_id",
                    }
                ],
            }
        }
