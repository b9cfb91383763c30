##########################################################################################
#
# Script name: pipeline.py
#
# Description: Request normalization, the fetch/classify/cluster/balance pipeline, and
#              the request boundary that maps failures to response statuses.
#
##########################################################################################

from __future__ import annotations

import logging
import os
from datetime import date, datetime, timedelta

from .cache import RESPONSE_CACHE, ResponseCache, cache_key
from .classifier import PublisherTables
from .clustering import cluster_articles
from .config import (
    ALLOWED_CATEGORIES,
    BUCKET_SLUGS,
    CLUSTER_MODES,
    DEFAULT_COUNTRY,
    DEFAULT_LANGUAGE,
    DEFAULT_MAX_ARTICLES,
    DEFAULT_QUERY,
    MAX_ARTICLES,
)
from .errors import ConfigurationError, QuotaExceededError
from .fetchers import CallBudget, GNewsClient, fetch_backfill, fetch_pool, merge_articles
from .models import Article, RequestParameters, ServiceResponse
from .planner import build_plan
from .sampler import balanced_sample, bucket_shortfalls
from .utils import is_date_only, parse_datetime, utc_now_iso


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

TRUTHY = {'1', 'true', 'yes', 'on'}
CLUSTER_ALIASES = {
    '': 'off',
    'none': 'off',
    'false': 'off',
    '0': 'off',
    'lexical': 'title',
    'semantic': 'smart',
}


# ****************************************************************************************
# Request normalization
# ****************************************************************************************


def _first(raw: dict, *names: str):
    for name in names:
        value = raw.get(name)
        if value is not None and str(value).strip() != '':
            return value
    return ''


def _clamp_int(value, default: int, low: int, high: int) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        number = default
    return max(low, min(number, high))


def _truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in TRUTHY


def _valid_date(value) -> str:
    text = str(value or '').strip()
    if text and parse_datetime(text) is not None:
        return text
    return ''


def normalize_parameters(raw: dict) -> RequestParameters:
    query = str(_first(raw, 'q') or DEFAULT_QUERY).strip() or DEFAULT_QUERY
    category = str(_first(raw, 'category', 'topic')).strip().lower()
    if category not in ALLOWED_CATEGORIES:
        category = ''
    bias = str(_first(raw, 'bias', 'spectrum')).strip().lower()
    if bias not in BUCKET_SLUGS:
        bias = ''
    cluster = str(_first(raw, 'cluster')).strip().lower()
    cluster = CLUSTER_ALIASES.get(cluster, cluster)
    if cluster not in CLUSTER_MODES:
        cluster = 'off'
    return RequestParameters(
        q=query,
        lang=str(_first(raw, 'lang') or DEFAULT_LANGUAGE).strip().lower(),
        country=str(_first(raw, 'country') or DEFAULT_COUNTRY).strip().lower(),
        max=_clamp_int(_first(raw, 'max'), DEFAULT_MAX_ARTICLES, 1, MAX_ARTICLES),
        category=category,
        expand='content' if str(_first(raw, 'expand')).strip().lower() == 'content' else 'summary',
        date_from=_valid_date(_first(raw, 'from')),
        date_to=_valid_date(_first(raw, 'to')),
        bias=bias,
        min_reliability=_clamp_int(_first(raw, 'minReliability', 'min_reliability'), 0, 0, 100),
        # A single-bias filter takes precedence over balanced sampling.
        balanced=_truthy(_first(raw, 'balanced')) and not bias,
        cluster=cluster,
    )


# ****************************************************************************************
# Pool filters
# ****************************************************************************************


def date_window(params: RequestParameters) -> tuple[datetime | None, datetime | None]:
    start = parse_datetime(params.date_from) if params.date_from else None
    end = parse_datetime(params.date_to) if params.date_to else None
    if end is not None and is_date_only(params.date_to):
        end = end + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


def filter_by_date(articles: list[Article], start: datetime | None, end: datetime | None) -> list[Article]:
    if start is None and end is None:
        return list(articles)
    kept: list[Article] = []
    for article in articles:
        published = article.published_at
        if published is None:
            kept.append(article)
            continue
        if start is not None and published < start:
            continue
        if end is not None and published > end:
            continue
        kept.append(article)
    return kept


def filter_by_reliability(articles: list[Article], min_reliability: int) -> list[Article]:
    if min_reliability <= 0:
        return list(articles)
    return [article for article in articles if article.reliability_score >= min_reliability]


def prepare_pool(articles: list[Article], params: RequestParameters) -> list[Article]:
    start, end = date_window(params)
    pool = filter_by_date(articles, start, end)
    log.debug('Pool after date window: %d of %d.', len(pool), len(articles))
    before = len(pool)
    pool = filter_by_reliability(pool, params.min_reliability)
    log.debug('Pool after reliability floor %d: %d of %d.', params.min_reliability, len(pool), before)
    before = len(pool)
    pool = cluster_articles(pool, params.cluster)
    log.debug('Pool after %s clustering: %d of %d.', params.cluster, len(pool), before)
    return pool


def select_articles(pool: list[Article], params: RequestParameters) -> list[Article]:
    if params.bias:
        selected = [article for article in pool if article.bias == params.bias]
    elif params.balanced:
        selected = balanced_sample(pool, params.max)
    else:
        selected = list(pool)
    return selected[: params.max]


def build_payload(articles: list[Article], params: RequestParameters) -> dict:
    return {
        'totalArticles': len(articles),
        'articles': [article.to_payload() for article in articles],
        'fetchedAt': utc_now_iso(),
        'endpoint': params.endpoint,
        'parameters': params.echo(),
    }


# ****************************************************************************************
# Pipeline
# ****************************************************************************************


def run_pipeline(
    params: RequestParameters,
    client: GNewsClient,
    tables: PublisherTables | None = None,
    upstream_dates: bool = False,
    today: date | None = None,
) -> dict:
    plan = build_plan(params, today=today)
    log.debug(
        'Plan: endpoint=%s raw_target=%d per_page=%d supplemental=%s',
        params.endpoint,
        plan.raw_target,
        plan.per_page,
        ','.join(plan.supplemental_topics) or '-',
    )
    raw = fetch_pool(client, plan, tables=tables, upstream_dates=upstream_dates)
    pool = prepare_pool(raw, params)

    if params.balanced:
        shortfalls = bucket_shortfalls(pool, params.max)
        if shortfalls and client.budget.remaining:
            extra = fetch_backfill(client, params, shortfalls, tables=tables)
            if extra:
                raw = merge_articles([raw, extra])
                pool = prepare_pool(raw, params)

    selected = select_articles(pool, params)
    log.info(
        'Returning %d article(s) for q=%r (%d candidates, %d upstream call(s)).',
        len(selected),
        params.q,
        len(pool),
        client.budget.used,
    )
    return build_payload(selected, params)


def _scrub(message: str, secret: str) -> str:
    if secret:
        return message.replace(secret, '***')
    return message


def _upstream_dates_enabled() -> bool:
    return _truthy(os.getenv('GNEWS_UPSTREAM_DATES'))


def handle_request(
    raw_params: dict | None,
    cache: ResponseCache | None = None,
    session=None,
    tables: PublisherTables | None = None,
    today: date | None = None,
) -> ServiceResponse:
    cache = RESPONSE_CACHE if cache is None else cache
    api_key = ''
    try:
        params = normalize_parameters(raw_params or {})
        api_key = (os.getenv('GNEWS_API_KEY') or '').strip()
        if not api_key:
            raise ConfigurationError('GNEWS_API_KEY')

        key = cache_key(params.echo())
        cached = cache.get(key)
        if cached is not None:
            log.info('Cache HIT for q=%r.', params.q)
            return ServiceResponse(status_code=200, payload=cached, cache_status='HIT')

        client = GNewsClient(api_key, session=session, budget=CallBudget())
        try:
            payload = run_pipeline(
                params,
                client,
                tables=tables,
                upstream_dates=_upstream_dates_enabled(),
                today=today,
            )
        except QuotaExceededError as exc:
            stale = cache.get_stale(key)
            if stale is not None:
                log.info('Serving stale cached response for q=%r after %s.', params.q, exc.message)
                return ServiceResponse(status_code=200, payload={**stale, 'quotaExceeded': True}, cache_status='STALE')
            return ServiceResponse(
                status_code=429,
                payload={
                    'error': 'Upstream quota exceeded',
                    'quotaExceeded': True,
                    'endpoint': params.endpoint,
                    'parameters': params.echo(),
                    'timestamp': utc_now_iso(),
                },
            )

        cache.set(key, payload)
        return ServiceResponse(status_code=200, payload=payload)
    except ConfigurationError as exc:
        log.error('%s', exc.message)
        return ServiceResponse(
            status_code=500,
            payload={'error': 'Configuration error', 'message': exc.message, 'timestamp': utc_now_iso()},
        )
    except Exception as exc:  # noqa: BLE001
        message = _scrub(str(exc), api_key)
        log.exception('Pipeline failed: %s', message)
        return ServiceResponse(
            status_code=500,
            payload={'error': 'Internal server error', 'message': message, 'timestamp': utc_now_iso()},
        )
