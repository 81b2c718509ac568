"""Unit tests for the pure health scoring functions."""

from __future__ import annotations

from datetime import timedelta

import pytest

from swarm_health.core.types import HealthCategory
from swarm_health.health import health_scorer as scorer
from tests.fakes import NOW, make_metrics


# ---------------------------------------------------------------
# Overall health score
# ---------------------------------------------------------------


class TestHealthScore:
    def test_healthy_account_caps_at_100(self) -> None:
        m = make_metrics(post_success_rate=100.0, avg_response_time=200.0)
        assert scorer.calculate_health_score(m) == 100

    def test_penalties_accumulate(self) -> None:
        m = make_metrics(
            post_success_rate=80.0,
            error_rate_24h=10.0,
            rate_limit_hits_24h=1,
        )
        # 100 - 6 - 25 - 10
        assert scorer.calculate_health_score(m) == 59

    def test_login_challenge_and_state_penalty(self) -> None:
        m = make_metrics(post_success_rate=80.0, login_challenges=1, account_state="RECOVERY")
        # 100 - 6 - 15 - 40
        assert scorer.calculate_health_score(m) == 39

    def test_banned_account_floors_at_zero(self) -> None:
        m = make_metrics(post_success_rate=0.0, total_posts=0, account_state="BANNED")
        assert scorer.calculate_health_score(m) == 0

    def test_banned_account_with_perfect_numbers_stays_low(self) -> None:
        m = make_metrics(
            post_success_rate=100.0,
            error_rate_24h=0.0,
            avg_response_time=200.0,
            warmup_progress=50.0,
            account_state="BANNED",
        )
        # 100 + 10 + 5 + 5 - 100
        assert scorer.calculate_health_score(m) == 20

    def test_unknown_state_has_no_penalty(self) -> None:
        m = make_metrics(post_success_rate=80.0, account_state="SOMETHING_NEW")
        assert scorer.calculate_health_score(m) == 94

    def test_fast_response_bonus(self) -> None:
        assert scorer.calculate_health_score(
            make_metrics(post_success_rate=80.0, avg_response_time=300.0)
        ) == 99
        # no data is not fast
        assert scorer.calculate_health_score(
            make_metrics(post_success_rate=80.0, avg_response_time=0.0)
        ) == 94

    def test_warmup_bonus_only_while_in_progress(self) -> None:
        def score(progress: float) -> int:
            return scorer.calculate_health_score(
                make_metrics(post_success_rate=80.0, warmup_progress=progress)
            )

        assert score(40.0) == 99
        assert score(0.0) == 94
        assert score(100.0) == 94

    def test_score_is_rounded(self) -> None:
        assert scorer.calculate_health_score(make_metrics(post_success_rate=81.0)) == 94
        assert scorer.calculate_health_score(
            make_metrics(post_success_rate=80.0, error_rate_24h=1.5)
        ) == 90

    def test_same_input_same_output(self) -> None:
        m = make_metrics(post_success_rate=63.3, error_rate_24h=4.2)
        assert scorer.get_health_score_breakdown(m) == scorer.get_health_score_breakdown(m)


# ---------------------------------------------------------------
# Engagement and risk
# ---------------------------------------------------------------


class TestEngagementScore:
    def test_recent_and_busy(self) -> None:
        assert scorer.calculate_engagement_score(make_metrics()) == 100

    def test_never_posted(self) -> None:
        m = make_metrics(total_posts=0, last_post_at=None)
        assert scorer.calculate_engagement_score(m) == 30

    def test_recency_and_volume_penalties(self) -> None:
        m = make_metrics(total_posts=10, last_post_at=NOW - timedelta(hours=100))
        assert scorer.calculate_engagement_score(m) == 70

    def test_volume_bonus(self) -> None:
        m = make_metrics(total_posts=150, last_post_at=NOW - timedelta(hours=200))
        assert scorer.calculate_engagement_score(m) == 70

    def test_exactly_one_day_is_not_penalised(self) -> None:
        m = make_metrics(last_post_at=NOW - timedelta(hours=24))
        assert scorer.calculate_engagement_score(m) == 100


class TestRiskScore:
    def test_quiet_active_account_has_no_risk(self) -> None:
        assert scorer.calculate_risk_score(make_metrics()) == 0

    def test_components_add_up(self) -> None:
        m = make_metrics(
            error_rate_7d=5.0,
            rate_limit_hits_7d=1,
            account_state="NEW_ACCOUNT",
            error_count_24h=6,
            post_success_rate=60.0,
        )
        # 10 + 5 + 5 + 20 + 15
        assert scorer.calculate_risk_score(m) == 55

    def test_clamped_to_100(self) -> None:
        m = make_metrics(
            account_state="SUSPENDED", login_challenges=1, post_success_rate=10.0
        )
        assert scorer.calculate_risk_score(m) == 100


# ---------------------------------------------------------------
# Categories and components
# ---------------------------------------------------------------


class TestCategorize:
    @pytest.mark.parametrize(
        "score, expected",
        [
            (100, HealthCategory.EXCELLENT),
            (90, HealthCategory.EXCELLENT),
            (89, HealthCategory.GOOD),
            (75, HealthCategory.GOOD),
            (74, HealthCategory.FAIR),
            (50, HealthCategory.FAIR),
            (49, HealthCategory.POOR),
            (25, HealthCategory.POOR),
            (24, HealthCategory.CRITICAL),
            (0, HealthCategory.CRITICAL),
        ],
    )
    def test_boundaries(self, score: int, expected: HealthCategory) -> None:
        assert scorer.categorize_health(score) is expected

    def test_out_of_range_inputs_clamp(self) -> None:
        assert scorer.categorize_health(150) is HealthCategory.EXCELLENT
        assert scorer.categorize_health(-5) is HealthCategory.CRITICAL


class TestBreakdown:
    def test_components(self) -> None:
        m = make_metrics(
            post_success_rate=80.4,
            avg_response_time=450.0,
            error_rate_24h=3.5,
            rate_limit_hits_24h=2,
            account_state="PAUSED",
        )
        b = scorer.get_health_score_breakdown(m)

        assert b.overall == 50
        assert b.category is HealthCategory.FAIR
        assert b.reliability == 80
        assert b.breakdown.post_success_score == 80
        assert b.breakdown.response_time_score == 90
        assert b.breakdown.error_score == pytest.approx(65.0)
        assert b.breakdown.rate_limit_score == 60
        assert b.breakdown.account_state_score == 80
        assert b.breakdown.warmup_score == 100

    def test_warmup_score_tracks_progress_while_warming(self) -> None:
        m = make_metrics(account_state="WARMING_UP", warmup_progress=42.6)
        assert scorer.get_health_score_breakdown(m).breakdown.warmup_score == 43

    def test_component_floors(self) -> None:
        m = make_metrics(error_rate_24h=50.0, rate_limit_hits_24h=9)
        b = scorer.get_health_score_breakdown(m).breakdown
        assert b.error_score == 0
        assert b.rate_limit_score == 0

    @pytest.mark.parametrize(
        "avg, expected",
        [
            (0, 100),
            (299, 100),
            (300, 90),
            (999, 80),
            (1000, 60),
            (2000, 40),
            (4999, 40),
            (5000, 20),
        ],
    )
    def test_response_time_tiers(self, avg: float, expected: int) -> None:
        assert scorer.response_time_score(avg) == expected


# ---------------------------------------------------------------
# Flags
# ---------------------------------------------------------------


class TestFlags:
    def test_healthy_when_nothing_fires(self) -> None:
        assert scorer.detect_flags(make_metrics()) == ["HEALTHY"]

    def test_no_healthy_flag_below_90_percent(self) -> None:
        assert scorer.detect_flags(make_metrics(post_success_rate=85.0)) == []

    def test_critical_error_rate_supersedes_high(self) -> None:
        flags = scorer.detect_flags(make_metrics(error_rate_24h=60.0))
        assert "CRITICAL_ERROR_RATE" in flags
        assert "HIGH_ERROR_RATE" not in flags

    def test_rate_limited_is_not_duplicated(self) -> None:
        m = make_metrics(rate_limit_hits_24h=2, account_state="RATE_LIMITED")
        assert scorer.detect_flags(m) == ["RATE_LIMITED"]

    def test_frequent_rate_limits(self) -> None:
        flags = scorer.detect_flags(make_metrics(rate_limit_hits_24h=4))
        assert "FREQUENT_RATE_LIMITS" in flags

    def test_banned_reports_suspended(self) -> None:
        flags = scorer.detect_flags(make_metrics(account_state="BANNED"))
        assert flags == ["ACCOUNT_SUSPENDED"]

    def test_never_posted(self) -> None:
        m = make_metrics(total_posts=0, post_success_rate=0.0, last_post_at=None)
        assert scorer.detect_flags(m) == ["LOW_SUCCESS_RATE", "INACTIVE"]

    def test_inactive_boundary(self) -> None:
        at_limit = make_metrics(last_post_at=NOW - timedelta(hours=168))
        past_limit = make_metrics(last_post_at=NOW - timedelta(hours=169))
        assert "INACTIVE" not in scorer.detect_flags(at_limit)
        assert "INACTIVE" in scorer.detect_flags(past_limit)

    def test_slow_response_and_challenge(self) -> None:
        m = make_metrics(avg_response_time=3500.0, login_challenges=1)
        assert scorer.detect_flags(m) == ["LOGIN_CHALLENGE", "SLOW_RESPONSE"]

    def test_flags_never_repeat(self) -> None:
        m = make_metrics(
            error_rate_24h=30.0,
            rate_limit_hits_24h=1,
            account_state="RATE_LIMITED",
            login_challenges=2,
            post_success_rate=20.0,
            last_post_at=None,
        )
        flags = scorer.detect_flags(m)
        assert len(flags) == len(set(flags))


# ---------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------


class TestRecommendations:
    def test_positive_message_for_healthy_account(self) -> None:
        assert scorer.generate_recommendations(make_metrics()) == [
            scorer.POSITIVE_RECOMMENDATION
        ]

    def test_empty_when_unremarkable(self) -> None:
        assert scorer.generate_recommendations(make_metrics(post_success_rate=85.0)) == []

    def test_order_follows_checks(self) -> None:
        recs = scorer.generate_recommendations(
            make_metrics(post_success_rate=60.0, rate_limit_hits_24h=1)
        )
        assert len(recs) == 2
        assert recs[0].startswith("Post success rate is low")
        assert recs[1].startswith("Rate limits detected")

    def test_state_specific_advice(self) -> None:
        suspended = scorer.generate_recommendations(make_metrics(account_state="SUSPENDED"))
        recovery = scorer.generate_recommendations(make_metrics(account_state="RECOVERY"))
        assert any("suspended/banned" in r for r in suspended)
        assert any("in recovery" in r for r in recovery)

    def test_early_warmup(self) -> None:
        recs = scorer.generate_recommendations(
            make_metrics(account_state="WARMING_UP", warmup_progress=20.0)
        )
        assert any(r.startswith("Continue warmup process") for r in recs)

    def test_inactivity_and_slow_responses(self) -> None:
        recs = scorer.generate_recommendations(
            make_metrics(
                last_post_at=NOW - timedelta(days=10), avg_response_time=4000.0
            )
        )
        assert recs[0].startswith("No posting activity in over a week")
        assert recs[1].startswith("Slow API response times")


# ---------------------------------------------------------------
# Baseline comparison
# ---------------------------------------------------------------


class TestCompareToBaseline:
    def test_no_history_is_stable(self) -> None:
        trend = scorer.compare_to_baseline(80, [])
        assert (trend.direction, trend.change_percent, trend.period_days) == (
            "stable",
            0.0,
            0,
        )

    def test_improving(self) -> None:
        trend = scorer.compare_to_baseline(80, [70, 70])
        assert trend.direction == "improving"
        assert trend.change_percent == pytest.approx(14.3)
        assert trend.period_days == 2

    def test_small_change_is_stable(self) -> None:
        assert scorer.compare_to_baseline(72, [70]).direction == "stable"

    def test_declining(self) -> None:
        trend = scorer.compare_to_baseline(50, [80, 60])
        assert trend.direction == "declining"
        assert trend.change_percent == pytest.approx(-28.6)

    def test_zero_baseline(self) -> None:
        assert scorer.compare_to_baseline(0, [0, 0]).direction == "stable"
        assert scorer.compare_to_baseline(40, [0]).direction == "improving"
