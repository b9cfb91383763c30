##########################################################################################
#
# Script name: classifier.py
#
# Description: Publisher bias and reliability lookup by hostname / registrable domain.
#
##########################################################################################

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import yaml

from .config import BUCKET_SLUGS, DEFAULT_RELIABILITY
from .utils import extract_hostname, registrable_domain


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

DEFAULT_TABLE_PATH = Path(__file__).resolve().parent / 'data' / 'publishers.yaml'


@dataclass(frozen=True)
class PublisherTables:
    bias: Mapping[str, str]
    reliability: Mapping[str, int]
    bucket_domains: Mapping[str, tuple[str, ...]]


@dataclass(frozen=True)
class Classification:
    bias: str
    reliability_score: int


# ****************************************************************************************
# Functions
# ****************************************************************************************


def build_publisher_tables(payload: dict) -> PublisherTables:
    raw_bias = payload.get('bias') or {}
    raw_reliability = payload.get('reliability') or {}
    if not isinstance(raw_bias, dict) or not isinstance(raw_reliability, dict):
        raise ValueError('publisher tables must map "bias" and "reliability" to mappings')

    for slug in raw_bias:
        if slug not in BUCKET_SLUGS:
            log.warning('Ignoring unknown bias bucket in publisher table: %s', slug)

    domain_to_bias: dict[str, str] = {}
    bucket_domains: dict[str, tuple[str, ...]] = {}
    for slug in BUCKET_SLUGS:
        kept: list[str] = []
        for domain in raw_bias.get(slug) or []:
            domain = str(domain).strip().lower()
            if not domain:
                continue
            # First bucket in left-to-right order wins.
            if domain in domain_to_bias:
                log.warning(
                    'Domain %s listed under both %s and %s; keeping %s.',
                    domain,
                    domain_to_bias[domain],
                    slug,
                    domain_to_bias[domain],
                )
                continue
            domain_to_bias[domain] = slug
            kept.append(domain)
        bucket_domains[slug] = tuple(kept)

    reliability: dict[str, int] = {}
    for domain, score in raw_reliability.items():
        try:
            value = int(score)
        except (TypeError, ValueError):
            log.warning('Ignoring non-integer reliability score for %s: %r', domain, score)
            continue
        reliability[str(domain).strip().lower()] = max(0, min(value, 100))

    return PublisherTables(
        bias=MappingProxyType(domain_to_bias),
        reliability=MappingProxyType(reliability),
        bucket_domains=MappingProxyType(bucket_domains),
    )


def load_publisher_tables_file(path: str | Path) -> PublisherTables:
    with open(path, 'r', encoding='utf-8') as handle:
        payload = yaml.safe_load(handle) or {}
    tables = build_publisher_tables(payload)
    log.debug(
        'Loaded %d bias entries and %d reliability entries from %s.',
        len(tables.bias),
        len(tables.reliability),
        path,
    )
    return tables


@lru_cache(maxsize=1)
def get_publisher_tables() -> PublisherTables:
    path = os.getenv('PUBLISHER_TABLE_FILE') or DEFAULT_TABLE_PATH
    return load_publisher_tables_file(path)


def _lookup(table: Mapping, hostname: str, registrable: str):
    if hostname in table:
        return table[hostname]
    if registrable in table:
        return table[registrable]
    return None


def classify(url: str, tables: PublisherTables | None = None) -> Classification:
    tables = tables or get_publisher_tables()
    hostname = extract_hostname(url)
    if not hostname:
        return Classification(bias='', reliability_score=DEFAULT_RELIABILITY)
    registrable = registrable_domain(hostname)
    bias = _lookup(tables.bias, hostname, registrable) or ''
    reliability = _lookup(tables.reliability, hostname, registrable)
    if reliability is None:
        reliability = DEFAULT_RELIABILITY
    return Classification(bias=bias, reliability_score=reliability)


def bucket_domains(slug: str, tables: PublisherTables | None = None) -> tuple[str, ...]:
    tables = tables or get_publisher_tables()
    return tables.bucket_domains.get(slug, ())
