"""
Monthly Revenue Pipeline

One run reads the whole ledger, rolls it up and merge-upserts the summaries
inside a single transaction. Any read or write failure aborts the run and
nothing is committed.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from store_analytics.database.connection import SessionFactory, get_db
from store_analytics.exceptions import DataAccessError
from store_analytics.ingestion.ledger_reader import LedgerReader
from store_analytics.transformation.rollup import RollupEngine
from store_analytics.transformation.summary_writer import SummaryWriter, build_summary_records

logger = structlog.get_logger(__name__)


@dataclass
class RollupRunResult:
    """Result of one pipeline run"""
    run_id: str
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    orders_seen: int
    orders_skipped: int
    summaries_written: int
    summary_ids: List[str] = field(default_factory=list)


async def run_monthly_revenue_rollup(
    session_factory: Optional[SessionFactory] = None,
    tz: Optional[str] = None,
) -> RollupRunResult:
    """
    Recompute every monthly revenue summary from the ledger.

    Raises:
        DataAccessError: The ledger could not be read or the batch could not
            be committed
    """
    session_factory = session_factory or get_db
    run_id = str(uuid.uuid4())
    started_at = datetime.now(timezone.utc)

    # Reader, engine and writer records all carry the run id
    with structlog.contextvars.bound_contextvars(run_id=run_id):
        logger.info("Starting monthly revenue rollup")

        try:
            async with session_factory() as db:
                engine = RollupEngine(tz)
                result = await engine.consume(LedgerReader(db).read())

                records = build_summary_records(result)
                written = await SummaryWriter(db).write(records, updated_at=started_at)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            # Commit failures surface here, after the writer has returned
            logger.error("Rollup commit failed", error=str(e))
            raise DataAccessError(f"Failed to commit monthly summaries: {e}") from e

        completed_at = datetime.now(timezone.utc)
        run = RollupRunResult(
            run_id=run_id,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            orders_seen=result.orders_seen,
            orders_skipped=result.orders_skipped,
            summaries_written=written,
            summary_ids=[record.summary_id for record in records],
        )
        logger.info(
            "monthlyRevenueSummary (with weekly breakdown) updated",
            orders_seen=run.orders_seen,
            orders_skipped=run.orders_skipped,
            summaries_written=run.summaries_written,
            duration_seconds=round(run.duration_seconds, 3),
        )
    return run


async def trigger_monthly_revenue_rollup(
    session_factory: Optional[SessionFactory] = None,
    source: str = "manual",
) -> Optional[RollupRunResult]:
    """
    Top-level entry for triggers: run the pipeline and log any failure.

    Returns:
        The run result, or None when the run failed
    """
    try:
        return await run_monthly_revenue_rollup(session_factory)
    except Exception as e:
        logger.error("Revenue calculation failed", source=source, error=str(e), error_type=type(e).__name__)
        return None
