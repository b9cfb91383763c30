from __future__ import annotations

import math
from datetime import date

from .config import (
    BALANCED_OVERFETCH,
    FILTERED_OVERFETCH,
    MAX_UPSTREAM_TARGET,
    PER_PAGE_CAP,
    SUPPLEMENTAL_TOPIC_ROTATION,
    SUPPLEMENTAL_TOPICS_PER_REQUEST,
)
from .models import FetchPlan, RequestParameters


def overfetch_target(
    requested: int,
    balanced: bool = False,
    bias_filter: bool = False,
    min_reliability: int = 0,
    cluster: str = "off",
    date_window: bool = False,
) -> int:
    if balanced:
        factor = BALANCED_OVERFETCH
    elif bias_filter or min_reliability > 0 or cluster != "off" or date_window:
        factor = FILTERED_OVERFETCH
    else:
        factor = 1.0
    target = math.ceil(requested * factor)
    return max(requested, min(MAX_UPSTREAM_TARGET, target))


def supplemental_topics(params: RequestParameters, today: date | None = None) -> tuple[str, ...]:
    if not params.balanced or params.category:
        return ()
    today = today or date.today()
    offset = today.toordinal() % len(SUPPLEMENTAL_TOPIC_ROTATION)
    rotated = SUPPLEMENTAL_TOPIC_ROTATION[offset:] + SUPPLEMENTAL_TOPIC_ROTATION[:offset]
    return tuple(rotated[:SUPPLEMENTAL_TOPICS_PER_REQUEST])


def build_plan(params: RequestParameters, today: date | None = None) -> FetchPlan:
    raw_target = overfetch_target(
        params.max,
        balanced=params.balanced,
        bias_filter=bool(params.bias),
        min_reliability=params.min_reliability,
        cluster=params.cluster,
        date_window=bool(params.date_from or params.date_to),
    )
    return FetchPlan(
        params=params,
        raw_target=raw_target,
        per_page=min(PER_PAGE_CAP, raw_target),
        supplemental_topics=supplemental_topics(params, today=today),
    )
