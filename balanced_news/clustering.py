from __future__ import annotations

import logging
import math
import re
from collections import Counter
from datetime import datetime
from urllib.parse import urlparse

from .config import (
    SMART_MAX_ITEMS,
    SMART_MAX_PAIRS,
    SMART_PASSTHROUGH_MAX,
    SMART_THRESHOLD,
    SMART_WEIGHTS,
    STOP_WORDS,
    TEMPORAL_FULL_HOURS,
    TEMPORAL_NEUTRAL_SCORE,
    TEMPORAL_ZERO_HOURS,
    TITLE_KEY_TOKENS,
    TITLE_NGRAM_WEIGHT,
    TITLE_UNIGRAM_WEIGHT,
)
from .models import Article
from .utils import OLDEST, newest_first, tokenize


log = logging.getLogger(__name__)

ENTITY_PATTERN = re.compile(r"\b[A-Z][A-Za-z0-9'\-]*[A-Za-z0-9]\b")
URL_NUMERIC_PATTERN = re.compile(r"\d{5,}")
URL_DATE_PATTERN = re.compile(r"(20\d{2})[/\-_]?(0[1-9]|1[0-2])[/\-_]?([0-2]\d|3[01])")
URL_SLUG_PATTERN = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+){2,}")
URL_NOISE_TOKENS = {"html", "htm", "php", "amp", "index", "www", "news", "article", "articles", "story"}


# Lexical clustering ---------------------------------------------------------------------


def title_key(title: str) -> str:
    distinct = sorted(set(tokenize(title)))
    return "-".join(distinct[:TITLE_KEY_TOKENS])


def cluster_by_title(articles: list[Article]) -> list[Article]:
    seen: set[str] = set()
    kept: list[Article] = []
    for article in newest_first(articles):
        key = title_key(article.title)
        if not key:
            kept.append(article)
            continue
        if key in seen:
            continue
        seen.add(key)
        kept.append(article)
    return kept


# Semantic clustering --------------------------------------------------------------------


class UnionFind:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, item: int) -> int:
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, left: int, right: int) -> bool:
        left_root = self.find(left)
        right_root = self.find(right)
        if left_root == right_root:
            return False
        if self.rank[left_root] < self.rank[right_root]:
            left_root, right_root = right_root, left_root
        self.parent[right_root] = left_root
        if self.rank[left_root] == self.rank[right_root]:
            self.rank[left_root] += 1
        return True


def _cosine(left: Counter, right: Counter) -> float:
    if not left or not right:
        return 0.0
    dot = sum(count * right.get(token, 0) for token, count in left.items())
    if not dot:
        return 0.0
    norm = math.sqrt(sum(v * v for v in left.values())) * math.sqrt(sum(v * v for v in right.values()))
    return dot / norm if norm else 0.0


def _jaccard(left: set, right: set) -> float:
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def _ngrams(tokens: list[str]) -> Counter:
    grams: Counter = Counter()
    for size in (2, 3):
        for idx in range(len(tokens) - size + 1):
            grams[" ".join(tokens[idx : idx + size])] += 1
    return grams


class _Features:
    __slots__ = ("unigrams", "ngrams", "entities", "url_tokens", "published_at")

    def __init__(self, article: Article) -> None:
        tokens = tokenize(article.title)
        self.unigrams = Counter(tokens)
        self.ngrams = _ngrams(tokens)
        self.entities = extract_entities(f"{article.title} {article.description}")
        self.url_tokens = url_tokens(article.url)
        self.published_at = article.published_at


def extract_entities(text: str) -> set[str]:
    entities = set()
    for match in ENTITY_PATTERN.findall(text or ""):
        lowered = match.lower()
        if lowered in STOP_WORDS:
            continue
        entities.add(lowered)
    return entities


def url_tokens(url: str) -> set[str]:
    try:
        path = urlparse(url or "").path.lower()
    except ValueError:
        return set()
    tokens: set[str] = set()
    for segment in path.split("/"):
        if not segment:
            continue
        for piece in re.split(r"[-_.]+", segment):
            if piece and piece not in STOP_WORDS and piece not in URL_NOISE_TOKENS:
                tokens.add(piece)
    tokens.update(f"num:{value}" for value in URL_NUMERIC_PATTERN.findall(path))
    tokens.update(f"date:{''.join(parts)}" for parts in URL_DATE_PATTERN.findall(path))
    tokens.update(f"slug:{value}" for value in URL_SLUG_PATTERN.findall(path))
    return tokens


def title_similarity(left: _Features, right: _Features) -> float:
    unigram = _cosine(left.unigrams, right.unigrams)
    if not left.ngrams and not right.ngrams:
        return unigram
    ngram = _cosine(left.ngrams, right.ngrams)
    return TITLE_UNIGRAM_WEIGHT * unigram + TITLE_NGRAM_WEIGHT * ngram


def temporal_similarity(left: datetime | None, right: datetime | None) -> float:
    if left is None or right is None:
        return TEMPORAL_NEUTRAL_SCORE
    hours = abs((left - right).total_seconds()) / 3600
    if hours <= TEMPORAL_FULL_HOURS:
        return 1.0
    if hours >= TEMPORAL_ZERO_HOURS:
        return 0.0
    return 1.0 - (hours - TEMPORAL_FULL_HOURS) / (TEMPORAL_ZERO_HOURS - TEMPORAL_FULL_HOURS)


def composite_similarity(left: _Features, right: _Features) -> float:
    return (
        SMART_WEIGHTS["title"] * title_similarity(left, right)
        + SMART_WEIGHTS["entity"] * _jaccard(left.entities, right.entities)
        + SMART_WEIGHTS["temporal"] * temporal_similarity(left.published_at, right.published_at)
        + SMART_WEIGHTS["url"] * _jaccard(left.url_tokens, right.url_tokens)
    )


def article_similarity(left: Article, right: Article) -> float:
    return composite_similarity(_Features(left), _Features(right))


def _representative(members: list[Article]) -> Article:
    # max() keeps the first of equal members, which is the earliest in pool order.
    return max(members, key=lambda item: (item.published_at or OLDEST, item.reliability_score))


def cluster_semantic(
    articles: list[Article],
    threshold: float = SMART_THRESHOLD,
    max_items: int = SMART_MAX_ITEMS,
    max_pairs: int = SMART_MAX_PAIRS,
    passthrough_max: int = SMART_PASSTHROUGH_MAX,
) -> list[Article]:
    ordered = newest_first(articles)
    working = ordered[:max_items]
    overflow = ordered[max_items:][:passthrough_max]

    features = [_Features(article) for article in working]
    groups = UnionFind(len(working))
    compared = 0
    exhausted = False
    for left_idx in range(len(working)):
        for right_idx in range(left_idx + 1, len(working)):
            if compared >= max_pairs:
                exhausted = True
                break
            compared += 1
            if groups.find(left_idx) == groups.find(right_idx):
                continue
            if composite_similarity(features[left_idx], features[right_idx]) >= threshold:
                groups.union(left_idx, right_idx)
        if exhausted:
            log.info("Semantic clustering stopped after %d pair comparisons.", compared)
            break

    clusters: dict[int, list[Article]] = {}
    for idx, article in enumerate(working):
        clusters.setdefault(groups.find(idx), []).append(article)

    representatives = [_representative(members) for members in clusters.values()]
    log.debug(
        "Semantic clustering reduced %d working articles to %d clusters (%d passed through).",
        len(working),
        len(representatives),
        len(overflow),
    )
    return representatives + overflow


def cluster_articles(articles: list[Article], mode: str) -> list[Article]:
    if mode == "title":
        return cluster_by_title(articles)
    if mode == "smart":
        return cluster_semantic(articles)
    return list(articles)
