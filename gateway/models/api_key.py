from datetime import datetime

from pydantic import BaseModel, Field


class CreateApiKeyRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    rate_limit: int | None = Field(default=None, gt=0)


class ApiKeyResponse(BaseModel):
    id: str
    name: str
    usage_count: int = 0
    is_active: bool
    rate_limit: int | None = None
    created_at: datetime


class ApiKeyCreatedResponse(BaseModel):
    id: str
    key: str  # Full key shown only on creation
    name: str


class ApiKeyListResponse(BaseModel):
    keys: list[ApiKeyResponse]


class ChangeActiveRequest(BaseModel):
    is_active: bool
