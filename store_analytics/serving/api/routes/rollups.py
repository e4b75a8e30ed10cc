"""
Rollup Trigger Endpoints

Manual invocation of the monthly revenue pipeline.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from store_analytics.database.connection import SessionFactory, get_session_factory
from store_analytics.pipeline import trigger_monthly_revenue_rollup

router = APIRouter()


@router.api_route("/monthly-revenue/run", methods=["GET", "POST"], response_class=PlainTextResponse)
async def run_monthly_revenue(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> PlainTextResponse:
    """
    Recompute all monthly revenue summaries now.

    Returns 200 when the run committed and 500 when it failed; failures are
    logged by the pipeline.
    """
    result = await trigger_monthly_revenue_rollup(session_factory, source="manual")
    if result is None:
        return PlainTextResponse("Error during revenue calculation.", status_code=500)
    return PlainTextResponse("Manual revenue calculation completed.")
