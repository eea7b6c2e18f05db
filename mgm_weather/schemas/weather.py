from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

METHOD_SCOPE = "Angular Scope"
METHOD_DOM = "DOM Fallback"
METHOD_NETWORK = "Network Interception"
METHOD_DIRECT = "Direct Page-Context Fetch"
METHOD_FAILED = "Failed"
METHOD_UNKNOWN = "Unknown"


class WeatherSnapshot(BaseModel):
    """Current, hourly and daily MGM payloads passed through as-is."""

    current: Optional[Any] = None
    hourly: Optional[Any] = None
    daily: Optional[Any] = None
    method: str = METHOD_UNKNOWN
    updated_at: str = Field(..., alias="updatedAt")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "current": {"sicaklik": 14.2, "nem": 48, "hadiseKodu": "PB"},
                    "hourly": [{"tarih": "2026-01-21T18:00:00.000Z", "sicaklik": 12}],
                    "daily": {"enDusukGun1": 3, "enYuksekGun1": 15},
                    "method": METHOD_SCOPE,
                    "updatedAt": "2026-01-21T15:04:05.123Z",
                }
            ]
        },
    )


class ErrorResponse(BaseModel):
    error: str
    detail: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"error": "Failed to fetch weather data.", "detail": "net::ERR_NAME_NOT_RESOLVED"}
            ]
        }
    }
