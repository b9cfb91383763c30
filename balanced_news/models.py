from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .config import DEFAULT_RELIABILITY


@dataclass
class Article:
    id: str
    title: str
    description: str
    content: str
    url: str
    image: str
    published_raw: str
    published_at: datetime | None
    source_name: str
    source_url: str
    bias: str = ""
    reliability_score: int = DEFAULT_RELIABILITY

    def identity(self) -> str:
        return self.url or self.source_url or self.title

    def to_payload(self) -> dict:
        return {
            "title": self.title or "No title",
            "description": self.description or "No description",
            "content": self.content or self.description or "No content available",
            "url": self.url,
            "image": self.image,
            "publishedAt": self.published_raw,
            "source": {"name": self.source_name or "Unknown Source", "url": self.source_url},
            "bias": self.bias,
            "reliabilityScore": self.reliability_score,
        }


@dataclass(frozen=True)
class RequestParameters:
    q: str
    lang: str
    country: str
    max: int
    category: str = ""
    expand: str = "summary"
    date_from: str = ""
    date_to: str = ""
    bias: str = ""
    min_reliability: int = 0
    balanced: bool = False
    cluster: str = "off"

    @property
    def endpoint(self) -> str:
        return "top-headlines" if self.category else "search"

    def echo(self) -> dict:
        return {
            "q": self.q,
            "lang": self.lang,
            "country": self.country,
            "max": self.max,
            "category": self.category,
            "expand": self.expand,
            "from": self.date_from,
            "to": self.date_to,
            "bias": self.bias or "default",
            "minReliability": self.min_reliability,
            "balanced": self.balanced,
            "cluster": self.cluster,
        }


@dataclass(frozen=True)
class FetchPlan:
    params: RequestParameters
    raw_target: int
    per_page: int
    supplemental_topics: tuple[str, ...] = ()


@dataclass
class UpstreamPage:
    articles: list[dict] = field(default_factory=list)
    total: int | None = None
    ok: bool = True


@dataclass
class ServiceResponse:
    status_code: int
    payload: dict
    cache_status: str = "MISS"
