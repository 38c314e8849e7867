"""
Usage metering models
"""
from pydantic import BaseModel, Field
from typing import Optional

class UsageCounter(BaseModel):
    user_id: str
    month_year: str = Field(..., description="UTC calendar month bucket, YYYY-MM")
    recipes_uploaded: int = 0
    images_uploaded: int = 0
    total_image_size: int = 0

class UsageLimits(BaseModel):
    can_upload: bool
    can_upload_image: bool
    reason: Optional[str] = None

class ImageUsageRequest(BaseModel):
    size_bytes: Optional[int] = None
