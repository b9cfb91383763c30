from __future__ import annotations

import math

from .config import BUCKET_SLUGS
from .models import Article
from .utils import newest_first


UNCLASSIFIED = ""


def adjacent_buckets(slug: str) -> list[str]:
    origin = BUCKET_SLUGS.index(slug)
    others = [other for other in BUCKET_SLUGS if other != slug]
    # Nearest first; equal distance prefers the bucket to the left.
    return sorted(others, key=lambda other: (abs(BUCKET_SLUGS.index(other) - origin), BUCKET_SLUGS.index(other)))


def partition_by_bias(articles: list[Article]) -> dict[str, list[int]]:
    ordered = newest_first(list(enumerate(articles)), key=lambda pair: pair[1])
    partitions: dict[str, list[int]] = {slug: [] for slug in BUCKET_SLUGS}
    partitions[UNCLASSIFIED] = []
    for idx, article in ordered:
        bucket = article.bias if article.bias in partitions else UNCLASSIFIED
        partitions[bucket].append(idx)
    return partitions


class _Selection:
    def __init__(self, articles: list[Article], target: int) -> None:
        self.articles = articles
        self.target = target
        self.picked: list[int] = []
        self.picked_ids: set[int] = set()
        self.counts: dict[str, int] = {slug: 0 for slug in BUCKET_SLUGS}

    @property
    def full(self) -> bool:
        return len(self.picked) >= self.target

    def take(self, idx: int, credit: str) -> None:
        self.picked.append(idx)
        self.picked_ids.add(idx)
        if credit in self.counts:
            self.counts[credit] += 1

    def next_unused(self, candidates: list[int]) -> int | None:
        for idx in candidates:
            if idx not in self.picked_ids:
                return idx
        return None


def _round_robin(selection: _Selection, partitions: dict[str, list[int]], per_bucket: int) -> None:
    while not selection.full:
        progressed = False
        for slug in BUCKET_SLUGS:
            if selection.full:
                break
            if selection.counts[slug] >= per_bucket:
                continue
            idx = selection.next_unused(partitions[slug])
            if idx is None:
                continue
            selection.take(idx, slug)
            progressed = True
        if not progressed:
            break


def _backfill_from_adjacent(selection: _Selection, partitions: dict[str, list[int]], per_bucket: int) -> None:
    for slug in BUCKET_SLUGS:
        shortfall = per_bucket - selection.counts[slug]
        for neighbour in adjacent_buckets(slug):
            while shortfall > 0 and not selection.full:
                idx = selection.next_unused(partitions[neighbour])
                if idx is None:
                    break
                # Credited to the short bucket so a neighbour cannot be drained twice.
                selection.take(idx, slug)
                shortfall -= 1
            if shortfall <= 0 or selection.full:
                break


def _fill_from(selection: _Selection, candidates: list[int]) -> None:
    for idx in candidates:
        if selection.full:
            return
        if idx not in selection.picked_ids:
            selection.take(idx, UNCLASSIFIED)


def interleave(articles: list[Article], max_rounds: int | None = None) -> list[Article]:
    groups: dict[str, list[Article]] = {slug: [] for slug in BUCKET_SLUGS}
    groups[UNCLASSIFIED] = []
    for article in articles:
        groups[article.bias if article.bias in groups else UNCLASSIFIED].append(article)
    queues = [items for items in groups.values() if items]
    rounds = max_rounds if max_rounds is not None else len(articles)
    ordered: list[Article] = []
    for _ in range(rounds):
        if not any(queues):
            break
        for queue in queues:
            if queue:
                ordered.append(queue.pop(0))
    for queue in queues:
        ordered.extend(queue)
    return ordered


def balanced_sample(articles: list[Article], target: int) -> list[Article]:
    if target <= 0 or not articles:
        return []
    per_bucket = math.ceil(target / len(BUCKET_SLUGS))
    partitions = partition_by_bias(articles)
    selection = _Selection(articles, target)

    _round_robin(selection, partitions, per_bucket)
    _backfill_from_adjacent(selection, partitions, per_bucket)
    _fill_from(selection, partitions[UNCLASSIFIED])
    remainder = [idx for idx, _ in newest_first(list(enumerate(articles)), key=lambda pair: pair[1])]
    _fill_from(selection, remainder)

    picked = [articles[idx] for idx in selection.picked]
    return interleave(picked)[:target]


def bucket_shortfalls(articles: list[Article], target: int) -> dict[str, int]:
    per_bucket = math.ceil(target / len(BUCKET_SLUGS))
    counts = {slug: 0 for slug in BUCKET_SLUGS}
    for article in articles:
        if article.bias in counts:
            counts[article.bias] += 1
    return {slug: per_bucket - count for slug, count in counts.items() if count < per_bucket}
