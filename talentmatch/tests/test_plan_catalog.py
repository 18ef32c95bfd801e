"""Plan catalog: quotas, unknown-plan fallback and Stripe price mapping."""
import pytest

from talentmatch.features.plans.catalog import (
    UNLIMITED,
    format_quota,
    is_unlimited,
    normalize_plan,
    plan_for_price,
    price_for_plan,
    quota_for,
)
from talentmatch.tests.mocks import build_test_settings


def test_known_plan_quotas():
    assert quota_for("free") == 3
    assert quota_for("starter") == 50
    assert quota_for("pro") == UNLIMITED
    assert is_unlimited(quota_for("pro"))


@pytest.mark.parametrize("plan", [None, "", "enterprise", "  ", "gold"])
def test_unknown_plan_resolves_to_free_quota(plan):
    assert quota_for(plan) == quota_for("free")
    assert normalize_plan(plan) == "free"


def test_plan_ids_match_case_insensitively():
    assert quota_for(" Starter ") == 50
    assert normalize_plan("PRO") == "pro"


def test_format_quota():
    assert format_quota(3) == "3"
    assert format_quota(UNLIMITED) == "unlimited"


def test_price_mapping_round_trips_through_settings():
    cfg = build_test_settings()
    assert price_for_plan("starter", cfg) == "price_starter"
    assert price_for_plan("pro", cfg) == "price_pro"
    assert price_for_plan("free", cfg) is None
    assert plan_for_price("price_starter", cfg) == "starter"
    assert plan_for_price("price_pro", cfg) == "pro"


def test_unknown_price_maps_to_free():
    cfg = build_test_settings()
    assert plan_for_price("price_mystery", cfg) == "free"
    assert plan_for_price(None, cfg) == "free"


def test_unconfigured_price_never_matches():
    cfg = build_test_settings(STRIPE_STARTER_PRICE_ID=None)
    assert price_for_plan("starter", cfg) is None
    assert plan_for_price("price_starter", cfg) == "free"
