"""
NewsAPI Scraper
Per-subject search against NewsAPI /v2/everything with key rotation and retries
API docs: https://newsapi.org/docs/endpoints/everything
"""
import asyncio
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse
import logging

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from .base import BaseScraper
from core import CandidateArticle, Subject, SubjectFetchResult
from credentials import ApiKeyManager
from utils.exceptions import (
    CredentialExhaustedError,
    InvalidCredentialError,
    RateLimitedError,
    TransientFetchError,
)


logger = logging.getLogger(__name__)

NO_HEALTHY_KEYS = "No healthy API keys available"

SleepFn = Callable[[float], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Retry-After as seconds; accepts delta-seconds or an HTTP-date."""
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return max(0.0, float(text))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - (now or _utcnow())).total_seconds())


def _parse_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _parse_datetime(value: Any) -> Optional[datetime]:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def source_domain(url: str) -> str:
    host = (urlparse(str(url or "")).netloc or "").lower()
    host = host.split("@")[-1].split(":")[0]
    if host.startswith("www."):
        host = host[4:]
    return host


class NewsApiScraper(BaseScraper[SubjectFetchResult]):
    """
    NewsAPI scraper

    Each attempt takes a fresh key from the ApiKeyManager and reports the
    outcome right after the call. Retries (tenacity):
    - 429: sleep Retry-After seconds (retry_delay when absent), then retry on
      another key, or on the same key when no other one is eligible
    - rejected key: rotate immediately
    - other transient errors: sleep retry_delay
    After max_retries the subject yields an empty result with an error string.
    """

    NEWS_API_URL = "https://newsapi.org/v2/everything"

    def __init__(
        self,
        key_manager: ApiKeyManager,
        *,
        base_url: str = NEWS_API_URL,
        language: str = "pt",
        sort_by: str = "publishedAt",
        page_size: int = 100,
        lookback_days: int = 7,
        request_timeout: float = 15.0,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(client=client, timeout=request_timeout)
        self.key_manager = key_manager
        self.base_url = base_url
        self.language = language
        self.sort_by = sort_by
        self.page_size = max(1, min(int(page_size), 100))
        self.lookback_days = max(0, int(lookback_days))
        self.request_timeout = float(request_timeout)
        self.max_retries = max(0, int(max_retries))
        self.retry_delay = max(0.0, float(retry_delay))
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings,
        key_manager: ApiKeyManager,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> "NewsApiScraper":
        news = settings.news_api
        return cls(
            key_manager,
            base_url=news.base_url,
            language=news.language,
            sort_by=news.sort_by,
            page_size=news.page_size,
            lookback_days=news.lookback_days,
            request_timeout=news.request_timeout,
            max_retries=settings.fetch.max_retries,
            retry_delay=settings.fetch.retry_delay,
            client=client,
            sleep=sleep,
        )

    @property
    def name(self) -> str:
        return "NewsAPI"

    def is_configured(self) -> bool:
        return len(self.key_manager) > 0

    def _from_date(self) -> str:
        """Lower bound of the query window, YYYY-MM-DD."""
        return (self._clock() - timedelta(days=self.lookback_days)).date().isoformat()

    def _build_params(self, query: str) -> Dict[str, Any]:
        return {
            "q": query,
            "language": self.language,
            "sortBy": self.sort_by,
            "pageSize": self.page_size,
            "from": self._from_date(),
        }

    def _retry_wait(self, retry_state) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
            return exc.retry_after
        if isinstance(exc, InvalidCredentialError):
            return 0.0
        return self.retry_delay

    def _before_sleep(self, subject_name: str):
        def _log(retry_state) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                f"[{self.name}] Error fetching '{subject_name}', retry "
                f"{retry_state.attempt_number}/{self.max_retries} in {wait:.1f}s: {exc}"
            )
        return _log

    async def search(self, query) -> SubjectFetchResult:
        """
        Fetch recent articles for one subject

        Args:
            query: Subject or plain subject name

        Returns:
            SubjectFetchResult; never raises for API-level failures
        """
        subject_name = query.name if isinstance(query, Subject) else str(query or "").strip()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._retry_wait,
            retry=retry_if_exception_type(TransientFetchError),
            sleep=self._sleep,
            before_sleep=self._before_sleep(subject_name),
            reraise=True,
        )

        try:
            result = await retrying(self._fetch_once, subject_name, {})
        except CredentialExhaustedError:
            attempts = int(retrying.statistics.get("attempt_number", 1))
            logger.error(f"[{self.name}] No API key available for '{subject_name}'")
            return SubjectFetchResult(subject=subject_name, attempts=attempts, error=NO_HEALTHY_KEYS)
        except TransientFetchError as exc:
            attempts = int(retrying.statistics.get("attempt_number", 1))
            message = (
                f"Failed to fetch articles for {subject_name} after "
                f"{self.max_retries} retries: {exc.message}"
            )
            self._log_error(f"Giving up on '{subject_name}'", exc)
            return SubjectFetchResult(subject=subject_name, attempts=attempts, error=message)

        result.attempts = int(retrying.statistics.get("attempt_number", 1))
        self._log_search(subject_name, len(result.articles))
        return result

    async def _fetch_once(self, subject_name: str, state: Dict[str, Any]) -> SubjectFetchResult:
        credential = await self.key_manager.select_best()
        if credential is None and state.get("rate_limited") is not None:
            # the retry wait already honoured Retry-After
            credential = self.key_manager.reclaim(state.pop("rate_limited"))
        if credential is None:
            raise CredentialExhaustedError(NO_HEALTHY_KEYS, source=self.name)

        client = await self._get_client()
        try:
            response = await client.get(
                self.base_url,
                params=self._build_params(subject_name),
                headers={"X-Api-Key": credential.key},
                timeout=self.request_timeout,
            )
        except httpx.HTTPError as exc:
            self.key_manager.report(credential, success=False)
            raise TransientFetchError(
                f"Request failed: {exc or type(exc).__name__}", source=self.name
            ) from exc

        payload = self._json(response)
        code = str(payload.get("code") or "")

        if response.status_code == 429 or code == "rateLimited":
            self.key_manager.report(credential, success=False, rate_limited=True)
            state["rate_limited"] = credential
            raise RateLimitedError(
                f"Rate limited on key {credential.key_id}",
                source=self.name,
                retry_after=parse_retry_after(response.headers.get("retry-after"), self._clock()),
            )

        if response.status_code == 401 or code in {"apiKeyInvalid", "apiKeyDisabled", "apiKeyMissing", "apiKeyExhausted"}:
            self.key_manager.report(credential, success=False)
            self.key_manager.mark_invalid(credential, code or "HTTP 401")
            raise InvalidCredentialError(
                f"Key {credential.key_id} rejected ({code or response.status_code})",
                source=self.name,
                status_code=response.status_code,
            )

        if response.status_code >= 400 or payload.get("status") != "ok":
            self.key_manager.report(credential, success=False)
            raise TransientFetchError(
                f"HTTP {response.status_code}: {payload.get('message') or code or 'unexpected response'}",
                source=self.name,
                status_code=response.status_code,
            )

        self.key_manager.report(credential, success=True)

        reset = _parse_int(response.headers.get("x-ratelimit-reset"))
        articles: List[CandidateArticle] = []
        for raw in payload.get("articles") or []:
            article = self._convert_article(raw, subject_name)
            if article is not None:
                articles.append(article)

        return SubjectFetchResult(
            subject=subject_name,
            articles=articles,
            succeeded=True,
            rate_limit_remaining=_parse_int(response.headers.get("x-ratelimit-remaining")),
            rate_limit_reset=datetime.fromtimestamp(reset, tz=timezone.utc) if reset is not None else None,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def _convert_article(self, data: Dict[str, Any], subject_name: str) -> Optional[CandidateArticle]:
        """Convert one NewsAPI article object; removed or URL-less items are dropped"""
        if not isinstance(data, dict):
            return None
        url = str(data.get("url") or "").strip()
        title = str(data.get("title") or "").strip()
        if not url or title == "[Removed]":
            return None

        source = data.get("source") or {}
        return CandidateArticle(
            url=url,
            title=title,
            description=data.get("description"),
            content=data.get("content"),
            image_url=data.get("urlToImage"),
            published_at=_parse_datetime(data.get("publishedAt")),
            source_name=source.get("name") if isinstance(source, dict) else "",
            source_domain=source_domain(url),
            author=data.get("author"),
            subject=subject_name,
        )
