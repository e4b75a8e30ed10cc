"""
Monthly Summary Endpoints

Read access to the persisted revenue rollups.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select

from store_analytics.database.connection import SessionFactory, get_session_factory
from store_analytics.database.models import MonthlyRevenueSummary

router = APIRouter()


class SummaryResponse(BaseModel):
    """Monthly summary response"""
    model_config = ConfigDict(from_attributes=True)

    summary_id: str
    store_id: str
    month: str
    total_revenue: Decimal
    total_orders: int
    total_products_sold: int
    active_customers: int
    weekly: List[Dict[str, Any]]
    updated_at: Optional[datetime] = None


class SummaryListResponse(BaseModel):
    store_id: str
    items: List[SummaryResponse]


@router.get("/{store_id}", response_model=SummaryListResponse)
async def list_store_summaries(
    store_id: str,
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> SummaryListResponse:
    """
    List monthly summaries for a store, newest month first.

    With ``month`` set, returns that single month or 404.
    """
    query = select(MonthlyRevenueSummary).where(MonthlyRevenueSummary.store_id == store_id)
    if month:
        query = query.where(MonthlyRevenueSummary.month == month)
    query = query.order_by(MonthlyRevenueSummary.month.desc())

    async with session_factory() as db:
        result = await db.execute(query)
        rows = result.scalars().all()
        items = [SummaryResponse.model_validate(row) for row in rows]

    if month and not items:
        raise HTTPException(status_code=404, detail="Summary not found")

    return SummaryListResponse(store_id=store_id, items=items)
