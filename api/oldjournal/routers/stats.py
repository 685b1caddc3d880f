"""Site statistics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..deps import get_db
from ..services.site_stats import get_site_stats, invalidate_site_stats

router = APIRouter(prefix="/stats", tags=["Statistics"])


@router.get("", response_model=schemas.SiteStats)
def get_statistics(
    refresh: bool = Query(False, description="Force cache refresh"),
    db: Session = Depends(get_db),
) -> schemas.SiteStats:
    """
    Site-wide activity counters.

    Values are cached for a short while; `refresh` recomputes them.
    """
    if refresh:
        invalidate_site_stats()
    return get_site_stats(db)
