"""
Pydantic Schemas for Request/Response Validation

Request bodies use the camelCase keys of the public API; ``populate_by_name``
also accepts the snake_case field names.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class QRGenerateRequest(BaseModel):
    """Request schema for issuing a table token."""
    model_config = ConfigDict(populate_by_name=True)

    restaurant_id: Optional[str] = Field(
        None,
        alias="restaurantId",
        examples=["0b8f1c9e-4a52-4c1b-9a55-0f3d2f1a7e21"],
    )
    table_number: Optional[str] = Field(None, alias="tableNumber", examples=["5"])
    duration_hours: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("duration", "durationHours", "duration_hours"),
        allow_inf_nan=False,
        examples=[2],
    )
    created_by: Optional[str] = Field(None, alias="createdBy", max_length=50, examples=["waiter"])

    @field_validator("restaurant_id", "table_number", mode="before")
    @classmethod
    def coerce_label(cls, v: Optional[Union[str, int]]) -> Optional[str]:
        """Table numbers are opaque labels; accept JSON numbers too."""
        if v is None:
            return v
        return str(v).strip()


class QRRefreshRequest(BaseModel):
    """Request schema for extending a token."""
    duration_hours: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("duration", "durationHours", "duration_hours"),
        allow_inf_nan=False,
        examples=[2],
    )


class RestaurantCreate(BaseModel):
    """Request schema for registering a restaurant."""
    name: str = Field(..., min_length=1, max_length=255, examples=["Masa Kebap"])
    username: str = Field(..., min_length=2, max_length=100, examples=["masakebap"])
    subdomain: Optional[str] = Field(None, max_length=100, examples=["masakebap"])

    @field_validator("username", "subdomain")
    @classmethod
    def normalize_handle(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        return v.strip().lower()


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class RestaurantResponse(BaseModel):
    """Response schema for a restaurant."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    username: str
    subdomain: Optional[str]
    created_at: Optional[datetime]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    message: str
    expiresAt: Optional[str] = None


class SuccessResponse(BaseModel):
    """Envelope for successful responses."""
    success: bool = True
    data: Optional[Any] = None
    message: Optional[str] = None


class CleanupResponse(BaseModel):
    """Response of the expiry sweep."""
    success: bool = True
    count: int
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    environment: str
    timestamp: datetime
