"""Reddit opportunity scanner: keyword search, LLM relevance analysis, persistence."""
from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from apps.backend.clients.llm import chat_complete
from apps.backend.clients.reddit import RedditAPIError, RedditClient
from apps.backend.config import get_settings
from apps.backend.models.brand import Brand
from apps.backend.models.reddit import RedditAgentSettings, RedditKeyword, RedditOpportunity

logger = logging.getLogger(__name__)

MAX_POSTS_PER_BATCH = 10
DEFAULT_MIN_RELEVANCE = 50
OPPORTUNITY_TYPES = (
    "recommendation_request",
    "problem_discussion",
    "competitor_mention",
    "industry_discussion",
    "question",
    "review_thread",
    "other",
)

_JSON_BLOCK = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def _join(values, default: str) -> str:
    items = [str(v) for v in values or [] if v]
    return ", ".join(items) if items else default


def brand_context(brand: Brand) -> dict:
    return {
        "brand_id": brand.id,
        "brand_name": brand.brand_name or "",
        "description": brand.description or "",
        "website_url": brand.website_url or "",
        "languages": brand.languages or [],
        "target_audiences": brand.target_audiences or [],
        "business_keywords": brand.business_keywords or [],
        "competitors": brand.competitors or [],
    }


def build_analysis_prompt(brand: dict, posts: list[dict]) -> str:
    post_blocks = []
    for i, p in enumerate(posts):
        body = p.get("selftext") or ""
        body_text = (body[:500] + ("..." if len(body) > 500 else "")) if body else "(no body text)"
        post_blocks.append(
            f"### Post {i + 1}\n"
            f"- Subreddit: r/{p.get('subreddit', '')}\n"
            f"- Title: {p.get('title', '')}\n"
            f"- Body: {body_text}\n"
            f"- Score: {p.get('score', 0)} upvotes\n"
            f"- Comments: {p.get('num_comments', 0)}\n"
        )
    types = "\n".join(f'   - "{t}"' for t in OPPORTUNITY_TYPES)
    return (
        f'You are an expert social media analyst helping the brand "{brand["brand_name"]}" '
        "find engagement opportunities on Reddit.\n\n"
        "## Brand Context\n"
        f"- Brand Name: {brand['brand_name']}\n"
        f"- Description: {brand['description'] or 'Not provided'}\n"
        f"- Website: {brand['website_url'] or 'Not provided'}\n"
        f"- Target Audiences: {_join(brand['target_audiences'], 'Not specified')}\n"
        f"- Business Keywords: {_join(brand['business_keywords'], 'Not specified')}\n"
        f"- Competitors: {_join(brand['competitors'], 'Not specified')}\n"
        f"- Languages: {_join(brand['languages'], 'English')}\n\n"
        "## Your Task\n"
        "For each post decide:\n"
        "1. relevanceScore (0-100): 80-100 direct opportunity, 60-79 related topic, "
        "40-59 moderate, 0-39 skip.\n"
        "2. matchedKeywords: brand keywords or topics the post matches.\n"
        f"3. opportunityType, one of:\n{types}\n"
        "4. isOpportunity: should the brand engage (true/false).\n\n"
        "Skip off-topic, locked or controversial threads and anything where engagement "
        "would look forced.\n\n"
        "## Posts to Analyze\n"
        + "\n".join(post_blocks)
        + "\n## Response Format\n"
        "Respond with valid JSON only:\n"
        "```json\n"
        '{"results": [{"postIndex": 0, "relevanceScore": 85, "matchedKeywords": ["keyword"], '
        '"isOpportunity": true, "opportunityType": "recommendation_request", "reason": "..."}]}\n'
        "```"
    )


def parse_analysis_response(text: str) -> dict | None:
    """JSON from a ```json block or the outermost {...}; trailing commas tolerated."""
    if not text:
        return None
    m = _JSON_BLOCK.search(text) or _JSON_OBJECT.search(text)
    raw = (m.group(1) if m and m.re is _JSON_BLOCK else m.group(0)) if m else text
    cleaned = _TRAILING_COMMA.sub(r"\1", raw).replace("```", "").strip()
    try:
        data = json.loads(cleaned)
    except ValueError:
        logger.warning("reddit_analysis_parse_failed len=%s", len(text))
        return None
    return data if isinstance(data, dict) else None


def _opportunity_from_post(post: dict, result: dict) -> dict:
    created = post.get("created_utc")
    opp_type = result.get("opportunityType")
    return {
        "post_id": f"t3_{post.get('id')}",
        "post_title": post.get("title") or "",
        "post_url": f"https://reddit.com{post.get('permalink') or ''}",
        "post_body": post.get("selftext") or None,
        "subreddit": post.get("subreddit") or "",
        "author": post.get("author"),
        "upvotes": post.get("score"),
        "comment_count": post.get("num_comments"),
        "posted_at": datetime.utcfromtimestamp(created) if isinstance(created, (int, float)) else None,
        "relevance_score": int(result.get("relevanceScore") or 0),
        "matched_keywords": [str(k) for k in result.get("matchedKeywords") or []],
        "opportunity_type": opp_type if opp_type in OPPORTUNITY_TYPES else "other",
    }


def analyze_post_batch(
    brand: dict,
    posts: list[dict],
    min_relevance: int,
    complete: Callable = chat_complete,
) -> list[dict]:
    if not posts:
        return []
    content, err = complete(
        [{"role": "user", "content": build_analysis_prompt(brand, posts)}],
        temperature=0.3,
    )
    if err or not content:
        logger.warning("reddit_analysis_failed brand_id=%s err=%s", brand.get("brand_id"), err)
        return []
    parsed = parse_analysis_response(content)
    if not parsed or not isinstance(parsed.get("results"), list):
        return []
    out: list[dict] = []
    for r in parsed["results"]:
        if not isinstance(r, dict) or not r.get("isOpportunity"):
            continue
        try:
            score = int(r.get("relevanceScore") or 0)
            idx = int(r.get("postIndex"))
        except (TypeError, ValueError):
            continue
        if score < min_relevance or idx < 0 or idx >= len(posts):
            continue
        out.append(_opportunity_from_post(posts[idx], r))
    return out


def scan_reddit_opportunities(
    client: RedditClient,
    brand: dict,
    keywords: list[str],
    subreddits: list[str] | None = None,
    *,
    max_posts_per_keyword: int = 10,
    time_range: str = "week",
    min_relevance: int = DEFAULT_MIN_RELEVANCE,
    complete: Callable = chat_complete,
) -> dict:
    started = time.monotonic()
    subreddits = [s for s in subreddits or [] if s]
    posts: list[dict] = []
    seen: set[str] = set()
    for keyword in keywords:
        try:
            if subreddits:
                found = client.search_multiple_subreddits(
                    keyword, subreddits, sort="relevance", time_range=time_range, limit=max_posts_per_keyword
                )
            else:
                found = client.search_posts(
                    keyword, sort="relevance", time_range=time_range, limit=max_posts_per_keyword
                )
        except RedditAPIError as e:
            logger.warning("reddit_search_failed keyword=%s code=%s status=%s", keyword, e.code, e.status_code)
            continue
        for post in found["posts"]:
            pid = post.get("id")
            if pid and pid not in seen:
                seen.add(pid)
                posts.append(post)

    opportunities: list[dict] = []
    for i in range(0, len(posts), MAX_POSTS_PER_BATCH):
        opportunities.extend(
            analyze_post_batch(brand, posts[i:i + MAX_POSTS_PER_BATCH], min_relevance, complete=complete)
        )
    opportunities.sort(key=lambda o: o["relevance_score"], reverse=True)
    return {
        "brand_id": brand.get("brand_id"),
        "opportunities": opportunities,
        "total_posts_scanned": len(posts),
        "keywords_used": list(keywords),
        "subreddits_searched": subreddits or ["all"],
        "execution_time_ms": int((time.monotonic() - started) * 1000),
    }


def default_reddit_client() -> RedditClient:
    s = get_settings()
    if not s.integration_reddit_client_id or not s.integration_reddit_client_secret:
        raise RedditAPIError("reddit_not_configured", 0, "Reddit API credentials not configured")
    return RedditClient(s.integration_reddit_client_id, s.integration_reddit_client_secret, s.reddit_user_agent)


def _save_opportunity(db: Session, brand_id: int, opp: dict) -> bool:
    exists = (
        db.query(RedditOpportunity.id)
        .filter(RedditOpportunity.brand_id == brand_id, RedditOpportunity.post_id == opp["post_id"])
        .first()
    )
    if exists:
        return False
    try:
        with db.begin_nested():
            db.add(RedditOpportunity(brand_id=brand_id, **opp))
    except IntegrityError:
        return False
    return True


def run_brand_scan(
    db: Session,
    brand_id: int,
    client: RedditClient | None = None,
    complete: Callable = chat_complete,
) -> dict:
    """Scan one brand and store new opportunities. Returns {scanned, found, saved, execution_time_ms}."""
    brand = db.get(Brand, brand_id)
    if not brand:
        raise ValueError(f"Brand not found: {brand_id}")
    keywords = (
        db.query(RedditKeyword)
        .filter(RedditKeyword.brand_id == brand_id, RedditKeyword.is_active.is_(True))
        .all()
    )
    settings_row = db.query(RedditAgentSettings).filter(RedditAgentSettings.brand_id == brand_id).first()
    if not keywords:
        if settings_row:
            now = datetime.utcnow()
            settings_row.last_scan_at = now
            settings_row.updated_at = now
            db.commit()
        logger.info("reddit_scan_skipped brand_id=%s reason=no_keywords", brand_id)
        return {"scanned": 0, "found": 0, "saved": 0, "execution_time_ms": 0}
    result = scan_reddit_opportunities(
        client or default_reddit_client(),
        brand_context(brand),
        [k.keyword for k in keywords],
        list(settings_row.default_subreddits or []) if settings_row else None,
        max_posts_per_keyword=10,
        time_range="week",
        min_relevance=(settings_row.min_relevance_score if settings_row and settings_row.min_relevance_score else DEFAULT_MIN_RELEVANCE),
        complete=complete,
    )

    saved = 0
    for opp in result["opportunities"]:
        if _save_opportunity(db, brand_id, opp):
            saved += 1

    now = datetime.utcnow()
    if settings_row:
        settings_row.total_scans = (settings_row.total_scans or 0) + 1
        settings_row.total_opportunities = (settings_row.total_opportunities or 0) + saved
        settings_row.last_scan_at = now
        settings_row.updated_at = now
    for kw in keywords:
        needle = kw.keyword.lower()
        matching = [
            o for o in result["opportunities"]
            if any(needle in m.lower() for m in o["matched_keywords"])
        ]
        kw.last_scan_at = now
        kw.updated_at = now
        if matching:
            kw.total_opportunities = (kw.total_opportunities or 0) + len(matching)
            kw.last_opportunity_at = now
    db.commit()
    logger.info(
        "reddit_scan_done brand_id=%s scanned=%s found=%s saved=%s",
        brand_id,
        result["total_posts_scanned"],
        len(result["opportunities"]),
        saved,
    )
    return {
        "scanned": result["total_posts_scanned"],
        "found": len(result["opportunities"]),
        "saved": saved,
        "execution_time_ms": result["execution_time_ms"],
    }
