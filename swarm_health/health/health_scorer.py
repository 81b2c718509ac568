"""Health scoring.

Pure functions over an :class:`AccountMetrics` snapshot. Time-based checks
measure against ``metrics.calculated_at`` so the same snapshot always scores
the same.
"""

from __future__ import annotations

from collections.abc import Sequence

from swarm_health.core.models import (
    AccountMetrics,
    HealthScoreBreakdown,
    HealthTrend,
    ScoreComponents,
)
from swarm_health.core.types import AccountState, HealthCategory
from swarm_health.core.utils import hours_between

INACTIVE_AFTER_HOURS = 7 * 24
SLOW_RESPONSE_MS = 3000
TREND_BAND_PERCENT = 5.0

_STATE_PENALTY: dict[str, int] = {
    AccountState.NEW_ACCOUNT.value: 0,
    AccountState.WARMING_UP.value: 0,
    AccountState.ACTIVE.value: 0,
    AccountState.RATE_LIMITED.value: 30,
    AccountState.PAUSED.value: 20,
    AccountState.SUSPENDED.value: 50,
    AccountState.RECOVERY.value: 40,
    AccountState.BANNED.value: 100,
}

_STATE_RISK: dict[str, int] = {
    AccountState.NEW_ACCOUNT.value: 5,
    AccountState.WARMING_UP.value: 10,
    AccountState.ACTIVE.value: 0,
    AccountState.RATE_LIMITED.value: 40,
    AccountState.PAUSED.value: 15,
    AccountState.SUSPENDED.value: 70,
    AccountState.RECOVERY.value: 60,
    AccountState.BANNED.value: 100,
}

# (upper bound exclusive, score); anything slower scores 20
_RESPONSE_TIME_TIERS: tuple[tuple[float, int], ...] = (
    (300, 100),
    (500, 90),
    (1000, 80),
    (2000, 60),
    (5000, 40),
)

_SUSPENDED_STATES = frozenset(
    {AccountState.SUSPENDED.value, AccountState.BANNED.value}
)

POSITIVE_RECOMMENDATION = (
    "Account is performing well. Continue current posting strategy."
)


def _clamp(score: float) -> int:
    return max(0, min(100, round(score)))


def _hours_since_last_post(metrics: AccountMetrics) -> float | None:
    if metrics.last_post_at is None:
        return None
    return hours_between(metrics.last_post_at, metrics.calculated_at)


def _is_inactive(metrics: AccountMetrics) -> bool:
    hours = _hours_since_last_post(metrics)
    return hours is None or hours > INACTIVE_AFTER_HOURS


def state_penalty(state: str) -> int:
    """Points deducted for *state*; unknown states cost nothing."""
    return _STATE_PENALTY.get(state, 0)


def state_risk(state: str) -> int:
    return _STATE_RISK.get(state, 0)


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


def calculate_health_score(metrics: AccountMetrics) -> int:
    """Overall health on a 0-100 scale, higher is healthier."""
    score = 100.0
    score -= (100 - metrics.post_success_rate) * 0.3
    score -= metrics.error_rate_24h * 2.5
    score -= metrics.rate_limit_hits_24h * 10
    score -= metrics.login_challenges * 15
    score -= state_penalty(metrics.account_state)

    if metrics.post_success_rate > 95:
        score += (metrics.post_success_rate - 95) * 2
    if 0 < metrics.avg_response_time < 500:
        score += 5
    if 0 < metrics.warmup_progress < 100:
        score += 5

    return _clamp(score)


def calculate_engagement_score(metrics: AccountMetrics) -> int:
    """Posting recency and volume on a 0-100 scale."""
    score = 100
    hours = _hours_since_last_post(metrics)
    if hours is None:
        score -= 50
    elif hours > 168:
        score -= 40
    elif hours > 72:
        score -= 20
    elif hours > 24:
        score -= 10

    if metrics.total_posts < 5:
        score -= 20
    elif metrics.total_posts < 20:
        score -= 10
    if metrics.total_posts > 100:
        score += 10

    return _clamp(score)


def calculate_risk_score(metrics: AccountMetrics) -> int:
    """Likelihood of restriction on a 0-100 scale, higher is riskier."""
    risk = 0.0
    risk += metrics.error_rate_7d * 2
    risk += metrics.rate_limit_hits_7d * 5
    risk += metrics.login_challenges * 30
    risk += state_risk(metrics.account_state)

    if metrics.error_count_24h > 5:
        risk += 20
    if metrics.post_success_rate < 50:
        risk += 30
    elif metrics.post_success_rate < 70:
        risk += 15

    return _clamp(risk)


def categorize_health(score: float) -> HealthCategory:
    score = max(0.0, min(100.0, score))
    if score >= 90:
        return HealthCategory.EXCELLENT
    if score >= 75:
        return HealthCategory.GOOD
    if score >= 50:
        return HealthCategory.FAIR
    if score >= 25:
        return HealthCategory.POOR
    return HealthCategory.CRITICAL


def response_time_score(avg_response_time: float) -> int:
    if avg_response_time == 0:
        return 100
    for upper, score in _RESPONSE_TIME_TIERS:
        if avg_response_time < upper:
            return score
    return 20


def get_health_score_breakdown(metrics: AccountMetrics) -> HealthScoreBreakdown:
    post_success = round(metrics.post_success_rate)
    if metrics.account_state == AccountState.WARMING_UP.value:
        warmup = round(metrics.warmup_progress)
    else:
        warmup = 100

    overall = calculate_health_score(metrics)
    return HealthScoreBreakdown(
        overall=overall,
        engagement=calculate_engagement_score(metrics),
        reliability=post_success,
        risk=calculate_risk_score(metrics),
        category=categorize_health(overall),
        breakdown=ScoreComponents(
            post_success_score=post_success,
            response_time_score=response_time_score(metrics.avg_response_time),
            error_score=max(0.0, 100 - metrics.error_rate_24h * 10),
            rate_limit_score=max(0, 100 - metrics.rate_limit_hits_24h * 20),
            account_state_score=100 - state_penalty(metrics.account_state),
            warmup_score=warmup,
        ),
    )


def compare_to_baseline(current: float, historical: Sequence[float]) -> HealthTrend:
    """Direction of *current* against the mean of *historical* scores.

    Changes within +/-5 % of the baseline count as stable.
    """
    if not historical:
        return HealthTrend(direction="stable", change_percent=0.0, period_days=0)

    baseline = sum(historical) / len(historical)
    if baseline == 0:
        change = 0.0 if current == 0 else 100.0
    else:
        change = (current - baseline) / baseline * 100

    if change > TREND_BAND_PERCENT:
        direction = "improving"
    elif change < -TREND_BAND_PERCENT:
        direction = "declining"
    else:
        direction = "stable"
    return HealthTrend(
        direction=direction,
        change_percent=round(change, 1),
        period_days=len(historical),
    )


# ---------------------------------------------------------------------------
# Flags and recommendations
# ---------------------------------------------------------------------------


def detect_flags(metrics: AccountMetrics) -> list[str]:
    """Issue codes for the snapshot, each at most once.

    Returns ``["HEALTHY"]`` when nothing fires and the success rate is above
    90 %.
    """
    flags: list[str] = []

    def add(flag: str) -> None:
        if flag not in flags:
            flags.append(flag)

    if metrics.error_rate_24h > 50:
        add("CRITICAL_ERROR_RATE")
    elif metrics.error_rate_24h > 20:
        add("HIGH_ERROR_RATE")

    if metrics.rate_limit_hits_24h > 3:
        add("FREQUENT_RATE_LIMITS")
    elif metrics.rate_limit_hits_24h > 0:
        add("RATE_LIMITED")

    state = metrics.account_state
    if state in _SUSPENDED_STATES:
        add("ACCOUNT_SUSPENDED")
    elif state == AccountState.RATE_LIMITED.value:
        add("RATE_LIMITED")
    elif state == AccountState.RECOVERY.value:
        add("IN_RECOVERY")

    if metrics.login_challenges > 0:
        add("LOGIN_CHALLENGE")
    if metrics.post_success_rate < 50:
        add("LOW_SUCCESS_RATE")
    if _is_inactive(metrics):
        add("INACTIVE")
    if metrics.avg_response_time > SLOW_RESPONSE_MS:
        add("SLOW_RESPONSE")

    if not flags and metrics.post_success_rate > 90:
        flags.append("HEALTHY")
    return flags


def generate_recommendations(metrics: AccountMetrics) -> list[str]:
    recs: list[str] = []
    state = metrics.account_state

    if metrics.post_success_rate < 70:
        recs.append(
            "Post success rate is low. Review error logs and reduce posting frequency."
        )
    if metrics.error_rate_24h > 20:
        recs.append(
            "High error rate in last 24h. Pause posting and investigate issues."
        )
    if metrics.rate_limit_hits_24h > 0:
        recs.append(
            "Rate limits detected. Reduce posting frequency and add delays between posts."
        )
    if metrics.login_challenges > 0:
        recs.append(
            "Login challenges detected. Manually verify account and consider proxy rotation."
        )

    if state in _SUSPENDED_STATES:
        recs.append(
            "Account is suspended/banned. Stop all activity and contact platform support."
        )
    elif state == AccountState.RATE_LIMITED.value:
        recs.append(
            "Account is rate limited. Wait 24-48 hours before resuming activity."
        )
    elif state == AccountState.RECOVERY.value:
        recs.append(
            "Account is in recovery. Use minimal activity and focus on engagement."
        )

    if state == AccountState.WARMING_UP.value and metrics.warmup_progress < 50:
        recs.append(
            "Continue warmup process. Follow the gradual activity increase schedule."
        )

    hours = _hours_since_last_post(metrics)
    if hours is not None and hours > INACTIVE_AFTER_HOURS:
        recs.append(
            "No posting activity in over a week. Resume posting to maintain account health."
        )

    if metrics.avg_response_time > SLOW_RESPONSE_MS:
        recs.append(
            "Slow API response times. Check proxy performance and network connectivity."
        )

    if not recs and metrics.post_success_rate > 90:
        recs.append(POSITIVE_RECOMMENDATION)
    return recs
