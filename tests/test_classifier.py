##########################################################################################
#
# Script name: test_classifier.py
#
# Description: Publisher bias / reliability lookup and registrable-domain tests.
#
##########################################################################################

from pathlib import Path

import pytest

from balanced_news.classifier import (
    build_publisher_tables,
    bucket_domains,
    classify,
    get_publisher_tables,
    load_publisher_tables_file,
)
from balanced_news.config import BUCKET_SLUGS, DEFAULT_RELIABILITY
from balanced_news.models import Article
from balanced_news.utils import extract_hostname, registrable_domain


def _registrable(url: str) -> str:
    return registrable_domain(extract_hostname(url))


def test_registrable_domain_handles_two_label_suffixes() -> None:
    assert _registrable('https://www.bbc.co.uk/news/x') == 'bbc.co.uk'
    assert _registrable('https://bbc.co.uk/other') == 'bbc.co.uk'
    assert _registrable('https://news.bbc.co.uk/story') == 'bbc.co.uk'
    assert _registrable('https://www.smh.com.au/world') == 'smh.com.au'


def test_registrable_domain_collapses_subdomains() -> None:
    assert _registrable('https://blog.example.com') == 'example.com'
    assert _registrable('https://example.com') == 'example.com'


@pytest.mark.parametrize(
    'url',
    [
        'https://www.reuters.com/world/us/story-123',
        'https://reuters.com',
        'http://reuters.com/markets?utm_source=x#frag',
        'https://graphics.reuters.com/interactive/',
        'https://WWW.REUTERS.COM/Business',
    ],
)
def test_classify_is_stable_across_path_query_and_www(url: str) -> None:
    result = classify(url)
    assert result.bias == 'center'
    assert result.reliability_score == 88


def test_classify_prefers_exact_hostname_match() -> None:
    # abcnews.go.com is listed by hostname; go.com itself is not.
    assert classify('https://abcnews.go.com/Politics/x').bias == 'lean-left'
    assert classify('https://abcnews.go.com/Politics/x').reliability_score == 72
    assert classify('https://espn.go.com/nfl').bias == ''


@pytest.mark.parametrize(
    'url',
    [
        'https://unknown-local-paper.net/story',
        'https://www.example.org',
        'not a url',
        '',
        'http://[invalid-ipv6/path',
    ],
)
def test_classify_unknown_publishers_get_defaults(url: str) -> None:
    result = classify(url)
    assert result.bias == ''
    assert result.reliability_score == DEFAULT_RELIABILITY


def test_bias_known_without_reliability_gets_default_score() -> None:
    result = classify('https://www.motherjones.com/politics/')
    assert result.bias == 'left'
    assert result.reliability_score == DEFAULT_RELIABILITY


def test_every_table_domain_belongs_to_exactly_one_bucket() -> None:
    tables = get_publisher_tables()
    seen: dict[str, str] = {}
    for slug in BUCKET_SLUGS:
        for domain in bucket_domains(slug):
            assert domain not in seen
            seen[domain] = slug
            assert tables.bias[domain] == slug


def test_duplicate_domain_keeps_first_bucket() -> None:
    tables = build_publisher_tables(
        {
            'bias': {
                'right': ['dupe.com'],
                'left': ['dupe.com', 'lefty.org'],
            },
            'reliability': {'dupe.com': 150, 'lefty.org': 'n/a'},
        }
    )
    assert tables.bias['dupe.com'] == 'left'
    assert tables.bucket_domains['right'] == ()
    assert tables.reliability['dupe.com'] == 100
    assert 'lefty.org' not in tables.reliability


def test_tables_are_read_only() -> None:
    tables = get_publisher_tables()
    with pytest.raises(TypeError):
        tables.bias['example.com'] = 'left'  # type: ignore[index]


def test_load_publisher_tables_from_custom_file(tmp_path: Path) -> None:
    path = tmp_path / 'publishers.yaml'
    path.write_text(
        'bias:\n'
        '  lean-right:\n'
        '    - local-times.com\n'
        'reliability:\n'
        '  local-times.com: 61\n',
        encoding='utf-8',
    )
    tables = load_publisher_tables_file(path)
    result = classify('https://www.local-times.com/a', tables)
    assert result.bias == 'lean-right'
    assert result.reliability_score == 61
    assert classify('https://reuters.com', tables).bias == ''


def test_article_defaults_to_default_reliability() -> None:
    article = Article(
        id='x',
        title='t',
        description='',
        content='',
        url='',
        image='',
        published_raw='',
        published_at=None,
        source_name='',
        source_url='',
    )
    assert article.reliability_score == DEFAULT_RELIABILITY
    assert article.bias == ''
