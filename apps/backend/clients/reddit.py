"""Reddit API client (application-only OAuth, read access to public data)."""
import base64
import logging
import time

import httpx

logger = logging.getLogger(__name__)

REDDIT_AUTH_URL = "https://www.reddit.com/api/v1/access_token"
REDDIT_API_URL = "https://oauth.reddit.com"
TOKEN_BUFFER_SECONDS = 60


class RedditAPIError(Exception):
    def __init__(self, code: str, status_code: int = 0, detail: str = "") -> None:
        super().__init__(f"{code}: {status_code} {detail}".strip())
        self.code = code
        self.status_code = status_code
        self.detail = detail


class RedditClient:
    def __init__(self, client_id: str, client_secret: str, user_agent: str, timeout: float = 30) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_agent = user_agent
        self.timeout = timeout
        self._access_token: str | None = None
        self._token_expiry = 0.0

    def _authenticate(self) -> str:
        if self._access_token and time.time() < self._token_expiry:
            return self._access_token
        basic = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        try:
            with httpx.Client(timeout=self.timeout) as c:
                r = c.post(
                    REDDIT_AUTH_URL,
                    headers={
                        "Authorization": f"Basic {basic}",
                        "User-Agent": self.user_agent,
                    },
                    data={"grant_type": "client_credentials"},
                )
        except httpx.HTTPError as e:
            raise RedditAPIError("reddit_auth_failed", 0, str(e)[:200]) from e
        if r.status_code >= 400:
            raise RedditAPIError("reddit_auth_failed", r.status_code, (r.text or "")[:200])
        data = r.json()
        self._access_token = data["access_token"]
        self._token_expiry = time.time() + int(data.get("expires_in") or 3600) - TOKEN_BUFFER_SECONDS
        return self._access_token

    def _get(self, path: str, params: dict) -> dict:
        token = self._authenticate()
        try:
            with httpx.Client(timeout=self.timeout) as c:
                r = c.get(
                    f"{REDDIT_API_URL}{path}",
                    params=params,
                    headers={"Authorization": f"Bearer {token}", "User-Agent": self.user_agent},
                )
        except httpx.HTTPError as e:
            raise RedditAPIError("reddit_request_failed", 0, str(e)[:200]) from e
        if r.status_code >= 400:
            raise RedditAPIError("reddit_api_error", r.status_code, (r.text or "")[:200])
        return r.json()

    def search_posts(
        self,
        query: str,
        *,
        sort: str = "relevance",
        time_range: str = "week",
        limit: int = 25,
        subreddit: str | None = None,
        restrict_sr: bool | None = None,
        include_over_18: bool = False,
        after: str | None = None,
        before: str | None = None,
    ) -> dict:
        """Returns {"posts": [...], "after": ..., "before": ...}."""
        params = {
            "q": query,
            "sort": sort,
            "t": time_range,
            "limit": str(limit),
            "restrict_sr": str(restrict_sr if restrict_sr is not None else bool(subreddit)).lower(),
            "include_over_18": str(include_over_18).lower(),
            "raw_json": "1",
        }
        if after:
            params["after"] = after
        if before:
            params["before"] = before
        path = f"/r/{subreddit}/search.json" if subreddit else "/search.json"
        data = self._get(path, params).get("data") or {}
        return {
            "posts": [child.get("data") or {} for child in data.get("children") or []],
            "after": data.get("after"),
            "before": data.get("before"),
        }

    def search_multiple_subreddits(self, query: str, subreddits: list[str], **options) -> dict:
        return self.search_posts(query, subreddit="+".join(subreddits), restrict_sr=True, **options)
