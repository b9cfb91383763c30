##########################################################################################
#
# Script name: test_planner.py
#
# Description: Overfetch planning tests.
#
##########################################################################################

from datetime import date

from balanced_news.models import RequestParameters
from balanced_news.planner import build_plan, overfetch_target, supplemental_topics


def _params(**overrides) -> RequestParameters:
    values = {'q': 'election', 'lang': 'en', 'country': 'us', 'max': 10}
    values.update(overrides)
    return RequestParameters(**values)


def test_overfetch_without_filters_is_exact() -> None:
    assert overfetch_target(10) == 10
    assert overfetch_target(1) == 1


def test_overfetch_balanced_triples_within_bounds() -> None:
    value = overfetch_target(10, balanced=True)
    assert 10 <= value <= 30
    assert value == 30
    assert overfetch_target(50, balanced=True) == 100


def test_overfetch_local_filters_use_one_and_a_half() -> None:
    assert overfetch_target(10, bias_filter=True) == 15
    assert overfetch_target(10, min_reliability=70) == 15
    assert overfetch_target(10, cluster='title') == 15
    assert overfetch_target(7, cluster='smart') == 11
    assert overfetch_target(10, date_window=True) == 15
    assert overfetch_target(90, bias_filter=True) == 100


def test_overfetch_never_below_requested() -> None:
    assert overfetch_target(100, balanced=True) == 100
    assert overfetch_target(100) == 100


def test_build_plan_caps_per_page() -> None:
    plan = build_plan(_params(max=20, balanced=True), today=date(2024, 1, 1))
    assert plan.raw_target == 60
    assert plan.per_page == 25
    small = build_plan(_params(max=5))
    assert small.raw_target == 5
    assert small.per_page == 5
    assert small.supplemental_topics == ()


def test_supplemental_topics_rotate_by_day_and_only_in_balanced_search() -> None:
    monday = supplemental_topics(_params(balanced=True), today=date(2024, 1, 1))
    tuesday = supplemental_topics(_params(balanced=True), today=date(2024, 1, 2))
    assert len(monday) == 3
    assert len(set(monday)) == 3
    assert monday != tuesday
    assert supplemental_topics(_params(balanced=True), today=date(2024, 1, 1)) == monday
    assert supplemental_topics(_params(balanced=True, category='sports')) == ()
    assert supplemental_topics(_params(balanced=False)) == ()
