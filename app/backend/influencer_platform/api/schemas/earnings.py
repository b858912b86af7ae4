"""
Earnings-related Pydantic schemas.
"""

from typing import Optional
from pydantic import BaseModel, Field


class EarningsResponse(BaseModel):
    """Current earnings of an application."""
    application_id: str
    campaign_id: str
    payment_model: str
    total_views: int = Field(..., description="Summed views of selected links")
    selected_links: int
    earnings: float
    cpm_rate: Optional[float] = None
    max_views: Optional[int] = None
