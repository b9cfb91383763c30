##########################################################################################
#
# Script name: fetchers.py
#
# Description: Fetches, normalizes, and merges article pages from the GNews API.
#
##########################################################################################

import logging
import math
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, Iterable

import requests

from .classifier import PublisherTables, bucket_domains, classify
from .config import (
    BACKFILL_DOMAINS_PER_BUCKET,
    BACKFILL_PAGES_PER_DOMAIN,
    BUCKET_SLUGS,
    GNEWS_BASE_URL,
    MAX_PARALLEL_CALLS,
    MAX_UPSTREAM_CALLS,
    MAX_UPSTREAM_TARGET,
    PER_PAGE_CAP,
    QUOTA_STATUS_CODES,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_DELAY_SECONDS,
    RETRYABLE_STATUS_CODES,
    USER_AGENT,
)
from .errors import QuotaExceededError, UpstreamError
from .models import Article, FetchPlan, RequestParameters, UpstreamPage
from .utils import OLDEST, canonicalize_url, parse_datetime, stable_id, strip_html


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

# urllib3 logs request URLs, which carry the API key
logging.getLogger('urllib3').setLevel(logging.WARNING)


# ****************************************************************************************
# Classes
# ****************************************************************************************


class CallBudget:
    def __init__(self, max_calls: int = MAX_UPSTREAM_CALLS):
        self.max_calls = max_calls
        self.used = 0
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        with self._lock:
            return max(0, self.max_calls - self.used)

    def try_acquire(self) -> bool:
        with self._lock:
            if self.used >= self.max_calls:
                return False
            self.used += 1
            return True


class GNewsClient:
    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        session=None,
        budget: CallBudget | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ):
        self.api_key = api_key
        self.base_url = (base_url or os.getenv('GNEWS_BASE_URL') or GNEWS_BASE_URL).rstrip('/')
        self.session = session or requests.Session()
        self.budget = budget or CallBudget()
        self.timeout = timeout
        self.retry_delay = retry_delay

    def search(
        self,
        query: str,
        lang: str,
        country: str = '',
        expand: str = 'summary',
        page: int = 1,
        page_size: int = PER_PAGE_CAP,
        date_from: str = '',
        date_to: str = '',
    ) -> UpstreamPage:
        params = self._base_params(query, lang, country, expand, page, page_size)
        if date_from:
            params['from'] = date_from
        if date_to:
            params['to'] = date_to
        return self._request('search', params)

    def headlines(
        self,
        topic: str,
        query: str = '',
        lang: str = 'en',
        country: str = '',
        expand: str = 'summary',
        page: int = 1,
        page_size: int = PER_PAGE_CAP,
    ) -> UpstreamPage:
        params = self._base_params(query, lang, country, expand, page, page_size)
        params['topic'] = topic
        return self._request('top-headlines', params)

    def _base_params(self, query, lang, country, expand, page, page_size) -> dict:
        params = {
            'apikey': self.api_key,
            'lang': lang,
            'expand': expand,
            'max': str(page_size),
            'page': str(page),
        }
        if query:
            params['q'] = query
        if country:
            params['country'] = country
        return params

    def _request(self, endpoint: str, params: dict) -> UpstreamPage:
        url = f'{self.base_url}/{endpoint}'
        for attempt in (1, 2):
            if not self.budget.try_acquire():
                log.info('Upstream call budget exhausted; skipping %s page %s.', endpoint, params.get('page'))
                return UpstreamPage(ok=False)
            try:
                return self._send(url, endpoint, params)
            except UpstreamError as exc:
                if attempt == 1:
                    log.warning('%s (retrying once)', exc)
                    time.sleep(self.retry_delay)
                    continue
                log.warning('%s (giving up)', exc)
        return UpstreamPage(ok=False)

    def _send(self, url: str, endpoint: str, params: dict) -> UpstreamPage:
        try:
            response = self.session.get(
                url,
                params=params,
                headers={'User-Agent': USER_AGENT},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise UpstreamError(endpoint, f'timeout after {self.timeout}s') from exc
        except requests.RequestException as exc:
            raise UpstreamError(endpoint, type(exc).__name__) from exc

        if response.status_code in QUOTA_STATUS_CODES:
            log.error('GNews %s rejected the request with status %s.', endpoint, response.status_code)
            raise QuotaExceededError(response.status_code, endpoint)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise UpstreamError(endpoint, f'status {response.status_code}')
        if response.status_code >= 400:
            log.warning(
                'GNews %s request failed (%s): %s',
                endpoint,
                response.status_code,
                (response.text or '').strip().replace('\n', ' ')[:240],
            )
            return UpstreamPage(ok=False)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(endpoint, 'malformed JSON body') from exc
        if not isinstance(payload, dict):
            raise UpstreamError(endpoint, 'unexpected response shape')
        articles = payload.get('articles')
        if not isinstance(articles, list):
            articles = []
        total = payload.get('totalArticles')
        return UpstreamPage(
            articles=[row for row in articles if isinstance(row, dict)],
            total=total if isinstance(total, int) else None,
        )


# ****************************************************************************************
# Functions
# ****************************************************************************************


def normalize_article(raw: dict, tables: PublisherTables | None = None) -> Article:
    source = raw.get('source')
    if not isinstance(source, dict):
        source = {}
    url = canonicalize_url(str(raw.get('url') or ''))
    source_url = str(source.get('url') or '').strip()
    title = strip_html(str(raw.get('title') or ''))
    description = strip_html(str(raw.get('description') or ''))
    content = strip_html(str(raw.get('content') or '')) or description
    published_raw = str(raw.get('publishedAt') or '')
    classification = classify(source_url or url, tables)
    return Article(
        id=stable_id(url or source_url or title, title),
        title=title,
        description=description,
        content=content,
        url=url,
        image=str(raw.get('image') or ''),
        published_raw=published_raw,
        published_at=parse_datetime(published_raw),
        source_name=strip_html(str(source.get('name') or '')),
        source_url=source_url,
        bias=classification.bias,
        reliability_score=classification.reliability_score,
    )


def merge_articles(batches: Iterable[Iterable[Article]]) -> list[Article]:
    unique: dict[str, Article] = {}
    skipped = 0
    for batch in batches:
        for article in batch:
            key = article.identity()
            if not key:
                skipped += 1
                continue
            existing = unique.get(key)
            if existing is None:
                unique[key] = article
                continue
            if (article.published_at or OLDEST) > (existing.published_at or OLDEST):
                unique[key] = article
    if skipped:
        log.debug('Skipped %d article(s) without url, publisher url, or title.', skipped)
    return list(unique.values())


def _normalize_pages(pages: list[UpstreamPage], tables: PublisherTables | None) -> list[list[Article]]:
    return [[normalize_article(row, tables) for row in page.articles] for page in pages]


def _fan_out(calls: list[Callable[[], UpstreamPage]]) -> list[UpstreamPage]:
    if not calls:
        return []
    if len(calls) == 1:
        return [calls[0]()]
    pages: list[UpstreamPage] = []
    quota_error = None
    with ThreadPoolExecutor(max_workers=min(MAX_PARALLEL_CALLS, len(calls))) as executor:
        futures = [executor.submit(call) for call in calls]
        for future in futures:
            try:
                pages.append(future.result())
            except QuotaExceededError as exc:
                quota_error = quota_error or exc
                pages.append(UpstreamPage(ok=False))
    if quota_error is not None:
        raise quota_error
    return pages


def _page_call(client: GNewsClient, params: RequestParameters, page: int, page_size: int, upstream_dates: bool):
    if params.category:
        return partial(
            client.headlines,
            topic=params.category,
            query=params.q,
            lang=params.lang,
            country=params.country,
            expand=params.expand,
            page=page,
            page_size=page_size,
        )
    return partial(
        client.search,
        query=params.q,
        lang=params.lang,
        country=params.country,
        expand=params.expand,
        page=page,
        page_size=page_size,
        date_from=params.date_from if upstream_dates else '',
        date_to=params.date_to if upstream_dates else '',
    )


def fetch_primary(client: GNewsClient, plan: FetchPlan, upstream_dates: bool = False) -> list[UpstreamPage]:
    params = plan.params
    first = _page_call(client, params, 1, plan.per_page, upstream_dates)()
    pages = [first]
    collected = len(first.articles)
    if not collected or collected >= plan.raw_target:
        return pages
    if first.total is not None and first.total <= collected:
        return pages

    effective = collected
    if effective < plan.per_page:
        log.debug('Upstream honored %d of %d requested items per page.', effective, plan.per_page)
    pages_needed = math.ceil((plan.raw_target - collected) / effective)
    if first.total is not None:
        pages_needed = min(pages_needed, math.ceil(first.total / effective) - 1)
    last_page = min(1 + pages_needed, math.ceil(MAX_UPSTREAM_TARGET / effective))
    last_page = min(last_page, 1 + client.budget.remaining)

    calls = [_page_call(client, params, page, effective, upstream_dates) for page in range(2, last_page + 1)]
    log.debug('Fetching %d more page(s) of %d from %s.', len(calls), effective, params.endpoint)
    pages.extend(_fan_out(calls))
    return pages


def fetch_supplemental(client: GNewsClient, plan: FetchPlan) -> list[UpstreamPage]:
    params = plan.params
    topics = list(plan.supplemental_topics)[: client.budget.remaining]
    calls = [
        partial(
            client.headlines,
            topic=topic,
            query=params.q,
            lang=params.lang,
            country=params.country,
            expand=params.expand,
            page=1,
            page_size=PER_PAGE_CAP,
        )
        for topic in topics
    ]
    if calls:
        log.debug('Fetching supplemental topics: %s', ', '.join(topics))
    return _fan_out(calls)


def fetch_pool(
    client: GNewsClient,
    plan: FetchPlan,
    tables: PublisherTables | None = None,
    upstream_dates: bool = False,
) -> list[Article]:
    pages = fetch_primary(client, plan, upstream_dates=upstream_dates)
    pages.extend(fetch_supplemental(client, plan))
    articles = merge_articles(_normalize_pages(pages, tables))
    log.debug(
        'Fetched %d page(s) (%d failed), %d unique article(s); %d upstream call(s) used.',
        len(pages),
        sum(1 for page in pages if not page.ok),
        len(articles),
        client.budget.used,
    )
    return articles


def fetch_backfill(
    client: GNewsClient,
    params: RequestParameters,
    shortfalls: dict[str, int],
    tables: PublisherTables | None = None,
) -> list[Article]:
    calls = []
    for slug in BUCKET_SLUGS:
        if shortfalls.get(slug, 0) <= 0:
            continue
        for domain in bucket_domains(slug, tables)[:BACKFILL_DOMAINS_PER_BUCKET]:
            for page in range(1, BACKFILL_PAGES_PER_DOMAIN + 1):
                calls.append(
                    partial(
                        client.search,
                        query=f'{params.q} site:{domain}',
                        lang=params.lang,
                        country=params.country,
                        expand=params.expand,
                        page=page,
                        page_size=PER_PAGE_CAP,
                    )
                )
    calls = calls[: client.budget.remaining]
    if not calls:
        return []
    short = [slug for slug in BUCKET_SLUGS if shortfalls.get(slug, 0) > 0]
    log.debug('Backfilling %s with %d site-scoped call(s).', ', '.join(short), len(calls))
    return merge_articles(_normalize_pages(_fan_out(calls), tables))
