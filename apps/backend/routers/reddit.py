"""Reddit agent for dashboard users: trigger a scan, list opportunities."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_user
from apps.backend.deps import get_db, get_queue
from apps.backend.models.brand import Brand
from apps.backend.models.reddit import RedditOpportunity
from apps.backend.services.reddit_schedule import enqueue_reddit_scan

logger = logging.getLogger(__name__)

router = APIRouter()

OPPORTUNITY_STATUSES = ("pending", "completed", "dismissed", "expired")


def _owned_brand(db: Session, brand_id: int, user_id: str) -> Brand:
    brand = db.get(Brand, brand_id)
    if not brand or brand.owner_user_id != user_id:
        raise HTTPException(status_code=404, detail="Brand not found")
    return brand


def _opportunity_dict(o: RedditOpportunity) -> dict:
    return {
        "id": o.id,
        "post_id": o.post_id,
        "post_title": o.post_title,
        "post_url": o.post_url,
        "subreddit": o.subreddit,
        "author": o.author,
        "upvotes": o.upvotes,
        "comment_count": o.comment_count,
        "posted_at": o.posted_at.isoformat() if o.posted_at else None,
        "relevance_score": o.relevance_score,
        "matched_keywords": o.matched_keywords or [],
        "opportunity_type": o.opportunity_type,
        "status": o.status,
    }


@router.post("/brands/{brand_id}/scan")
def trigger_scan(
    brand_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    queue=Depends(get_queue),
):
    _owned_brand(db, brand_id, user_id)
    try:
        job = enqueue_reddit_scan(queue, brand_id)
    except Exception as e:
        logger.warning("reddit_scan_enqueue_failed brand_id=%s err=%s", brand_id, str(e)[:200])
        raise HTTPException(status_code=503, detail="Failed to queue scan")
    return {"queued": True, "job_id": getattr(job, "id", None)}


@router.get("/brands/{brand_id}/opportunities")
def list_opportunities(
    brand_id: int,
    status: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    _owned_brand(db, brand_id, user_id)
    if status and status not in OPPORTUNITY_STATUSES:
        raise HTTPException(status_code=422, detail=f"Unknown status: {status}")
    stmt = select(RedditOpportunity).where(RedditOpportunity.brand_id == brand_id)
    if status:
        stmt = stmt.where(RedditOpportunity.status == status)
    rows = db.execute(
        stmt.order_by(RedditOpportunity.relevance_score.desc(), RedditOpportunity.id.desc()).limit(limit)
    ).scalars().all()
    return {"items": [_opportunity_dict(o) for o in rows], "total": len(rows)}
