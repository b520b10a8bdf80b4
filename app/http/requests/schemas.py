"""
Pydantic schemas for request/response validation (Http/Requests).
Field aliases keep the camelCase wire names the dashboard sends.
"""
from pydantic import BaseModel, Field, validator
from typing import Optional, List


def _normalize_shop(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip().lower()
    return v or None


class SyncRequest(BaseModel):
    """Body for sync-orders / sync-products. Brand resolves by brandId, else by shop."""
    shop: Optional[str] = None
    brand_id: Optional[str] = Field(None, alias="brandId")
    access_token: Optional[str] = Field(None, alias="accessToken")

    @validator("shop")
    def validate_shop(cls, v):
        return _normalize_shop(v)


class ShippingSyncRequest(BaseModel):
    brand_id: str = Field(..., alias="brandId", min_length=1)
    access_token: str = Field(..., alias="accessToken", min_length=1)
    shop: str = Field(..., min_length=1)

    @validator("shop")
    def validate_shop(cls, v):
        return _normalize_shop(v)


class SyncResult(BaseModel):
    created: int
    updated: int
    failed: int
    totalProcessed: int
    failedIds: List[str] = []


class SyncResponse(BaseModel):
    success: bool
    message: str
    sync_result: SyncResult


class ShippingSyncResponse(BaseModel):
    success: bool
    message: str
    zones: int
    rates: int
    failed: int
