"""Market health scoring for the web activity dashboard.

Scores are plain arithmetic over page and event counts, so they can be
computed from any store.
"""

from dataclasses import dataclass, field
from typing import Literal

Trend = Literal["up", "down", "stable"]


@dataclass
class HealthScore:
    """Health of one market's tracked content (all scores 0-100)."""
    market: str
    market_name: str
    overall_score: int
    content_freshness: int
    content_coverage: int
    update_frequency: int
    total_pages: int
    recent_updates: int
    trend: Trend
    alerts: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.overall_score >= 80:
            return "healthy"
        if self.overall_score >= 40:
            return "warning"
        return "critical"


class HealthScorer:
    """Weighted content health score.

    Scoring breakdown:
    - Freshness: share of pages modified in the last 30 days (40%)
    - Coverage: page count relative to the expected count (30%)
    - Update frequency: events in the last 7 days, 10 points each (30%)
    """

    FRESHNESS_WEIGHT = 0.4
    COVERAGE_WEIGHT = 0.3
    FREQUENCY_WEIGHT = 0.3

    def __init__(self, expected_pages: int = 50):
        self.expected_pages = expected_pages

    def score(
        self,
        market: str,
        market_name: str,
        total_pages: int,
        recently_modified: int,
        recent_events: int,
        previous_events: int,
    ) -> HealthScore:
        """Score a market.

        Args:
            total_pages: Pages stored for the market
            recently_modified: Pages modified in the last 30 days
            recent_events: Change events in the last 7 days
            previous_events: Change events in the 7 days before that
        """
        if total_pages == 0:
            return HealthScore(
                market=market,
                market_name=market_name,
                overall_score=0,
                content_freshness=0,
                content_coverage=0,
                update_frequency=0,
                total_pages=0,
                recent_updates=0,
                trend="stable",
                alerts=["No pages crawled yet"],
            )

        freshness = round(recently_modified / total_pages * 100)
        coverage = min(100, round(total_pages / self.expected_pages * 100)) if self.expected_pages else 100
        frequency = min(100, recent_events * 10)

        overall = round(
            freshness * self.FRESHNESS_WEIGHT
            + coverage * self.COVERAGE_WEIGHT
            + frequency * self.FREQUENCY_WEIGHT
        )

        return HealthScore(
            market=market,
            market_name=market_name,
            overall_score=overall,
            content_freshness=freshness,
            content_coverage=coverage,
            update_frequency=frequency,
            total_pages=total_pages,
            recent_updates=recent_events,
            trend=self._trend(recent_events, previous_events),
            alerts=self._alerts(freshness, coverage, frequency, total_pages),
        )

    def _trend(self, recent: int, previous: int) -> Trend:
        """Compare this week's activity to last week's (+/-20% band)."""
        if recent > previous * 1.2:
            return "up"
        if recent < previous * 0.8:
            return "down"
        return "stable"

    def _alerts(self, freshness: int, coverage: int, frequency: int, total_pages: int) -> list[str]:
        alerts = []
        if freshness < 20:
            alerts.append("Stale content - needs refresh")
        if coverage < 50:
            alerts.append("Low page coverage")
        if frequency < 20:
            alerts.append("Infrequent updates")
        if total_pages < 10:
            alerts.append("Very few pages crawled")
        return alerts
