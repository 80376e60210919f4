"""Reading payloads and their validation rules."""

import math
from datetime import datetime

from pydantic import BaseModel, field_validator

MAX_SENSOR_ID_LENGTH = 100
MAX_UNIT_LENGTH = 50
MAX_ABS_VALUE = 1_000_000.0

_UNIT_SYMBOLS = set("°%/ ")


class ReadingRequest(BaseModel):
    sensor_id: str
    value: float
    unit: str

    @field_validator("sensor_id")
    @classmethod
    def _check_sensor_id(cls, v: str) -> str:
        if not v:
            raise ValueError("Sensor ID cannot be empty")
        if len(v) > MAX_SENSOR_ID_LENGTH:
            raise ValueError(f"Sensor ID exceeds maximum length of {MAX_SENSOR_ID_LENGTH}")
        if not all(c.isalnum() or c in "-_" for c in v):
            raise ValueError(
                "Sensor ID contains invalid characters. "
                "Only letters, numbers, '-', and '_' are allowed."
            )
        return v

    @field_validator("unit")
    @classmethod
    def _check_unit(cls, v: str) -> str:
        if not v:
            raise ValueError("Unit cannot be empty")
        if len(v) > MAX_UNIT_LENGTH:
            raise ValueError(f"Unit exceeds maximum length of {MAX_UNIT_LENGTH}")
        if not all(c.isalnum() or c in _UNIT_SYMBOLS for c in v):
            raise ValueError(
                "Unit contains invalid characters. "
                "Only letters, numbers, and symbols (°%/ ) are allowed."
            )
        return v

    @field_validator("value")
    @classmethod
    def _check_value(cls, v: float) -> float:
        if math.isnan(v) or math.isinf(v):
            raise ValueError("Value must be a valid number")
        if abs(v) > MAX_ABS_VALUE:
            raise ValueError("Value exceeds maximum allowed range of +/- 1,000,000")
        return v


class ReadingData(BaseModel):
    sensor_id: str
    value: float
    unit: str


class ReadingResponse(BaseModel):
    status: str = "success"
    message: str
    timestamp: datetime
    data: ReadingData


class Reading(BaseModel):
    id: str
    api_key_id: str
    sensor_id: str
    value: float
    unit: str
    created_at: datetime


class ReadingListResponse(BaseModel):
    status: str = "success"
    count: int
    readings: list[Reading]
