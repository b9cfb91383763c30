##########################################################################################
#
# Script name: config.py
#
# Description: Static configuration, bias bucket taxonomy, and pipeline limits.
#
##########################################################################################

from dataclasses import dataclass


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************


@dataclass(frozen=True)
class BiasBucket:
    order: int
    slug: str
    label: str


BIAS_BUCKETS = [
    BiasBucket(order=0, slug='left', label='Left'),
    BiasBucket(order=1, slug='lean-left', label='Lean Left'),
    BiasBucket(order=2, slug='center', label='Center'),
    BiasBucket(order=3, slug='lean-right', label='Lean Right'),
    BiasBucket(order=4, slug='right', label='Right'),
]

BUCKET_BY_SLUG = {bucket.slug: bucket for bucket in BIAS_BUCKETS}
BUCKET_SLUGS = [bucket.slug for bucket in BIAS_BUCKETS]

ALLOWED_CATEGORIES = {
    'general',
    'world',
    'nation',
    'business',
    'technology',
    'entertainment',
    'sports',
    'science',
    'health',
}

DEFAULT_QUERY = 'latest news'
DEFAULT_LANGUAGE = 'en'
DEFAULT_COUNTRY = 'us'
DEFAULT_MAX_ARTICLES = 10
MAX_ARTICLES = 100
DEFAULT_RELIABILITY = 50

CLUSTER_MODES = ('off', 'title', 'smart')

# Overfetch
BALANCED_OVERFETCH = 3.0
FILTERED_OVERFETCH = 1.5
MAX_UPSTREAM_TARGET = 100

# Upstream provider
GNEWS_BASE_URL = 'https://gnews.io/api/v4'
USER_AGENT = 'balanced-news-feed/1.0'
PER_PAGE_CAP = 25
REQUEST_TIMEOUT_SECONDS = 10
RETRY_DELAY_SECONDS = 0.5
MAX_UPSTREAM_CALLS = 12
MAX_PARALLEL_CALLS = 4
QUOTA_STATUS_CODES = {403}
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Supplemental and backfill fetches (balanced mode)
SUPPLEMENTAL_TOPIC_ROTATION = ['world', 'business', 'technology', 'nation', 'science', 'health']
SUPPLEMENTAL_TOPICS_PER_REQUEST = 3
BACKFILL_DOMAINS_PER_BUCKET = 3
BACKFILL_PAGES_PER_DOMAIN = 1

# Near-duplicate clustering
TITLE_KEY_TOKENS = 6
SMART_MAX_ITEMS = 150
SMART_MAX_PAIRS = 8000
SMART_PASSTHROUGH_MAX = 100
SMART_THRESHOLD = 0.68
SMART_WEIGHTS = {
    'title': 0.45,
    'entity': 0.30,
    'temporal': 0.20,
    'url': 0.05,
}
TITLE_UNIGRAM_WEIGHT = 0.6
TITLE_NGRAM_WEIGHT = 0.4
TEMPORAL_FULL_HOURS = 6.0
TEMPORAL_ZERO_HOURS = 72.0
TEMPORAL_NEUTRAL_SCORE = 0.5

# Response cache
CACHE_TTL_SECONDS = 30 * 60
CACHE_STALE_SECONDS = 24 * 60 * 60
CACHE_MAX_ENTRIES = 100

STOP_WORDS = {
    'the',
    'a',
    'an',
    'to',
    'of',
    'in',
    'on',
    'and',
    'or',
    'as',
    'for',
    'at',
    'by',
    'with',
    'from',
    'about',
    'amid',
    'over',
    'after',
    'before',
    'into',
    'out',
    'up',
    'down',
    'is',
    'are',
    'was',
    'were',
    'be',
    'it',
    'its',
    'this',
    'that',
    'his',
    'her',
    'their',
    'says',
    'said',
}
