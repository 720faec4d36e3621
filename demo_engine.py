"""
Walkthrough of the full analytics engine against a seeded in-memory store.

This script exercises:
1. Configuration loading and validation
2. Trends over daily, weekly and monthly buckets
3. Correlation between two metrics
4. Personal-baseline anomaly detection
5. Consecutive-day alerts, the logging streak, goals and a weekly report

Run with: uv run python demo_engine.py
"""

import random
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vitalcore.config import configure_logging, validate_config
from vitalcore.domain.models import Category, Period, Sample
from vitalcore.services.engine import HealthAnalytics
from vitalcore.services.goals import Goal, GoalDirection, GoalTimeframe
from vitalcore.services.store import InMemorySampleStore

console = Console()


def seed_store(today: date, zone: ZoneInfo, days: int = 60) -> InMemorySampleStore:
    """Sixty days of plausible history ending with a bad morning."""
    rng = random.Random(7)
    store = InMemorySampleStore()

    def at(day: date, hour: int, minute: int = 0) -> datetime:
        return datetime.combine(day, time(hour, minute), tzinfo=zone)

    for offset in range(days, -1, -1):
        day = today - timedelta(days=offset)
        sleep = round(rng.uniform(5.5, 8.5), 1)
        weight = 86.0 - 0.05 * (days - offset) + rng.uniform(-0.3, 0.3)
        energy = round(sleep - 1 + rng.uniform(-0.5, 0.5), 1)
        store.extend(
            [
                Sample(instant=at(day, 7), metric_type="weight", value=weight, unit="kg"),
                Sample(
                    instant=at(day, 7, 5),
                    metric_type="resting_hr",
                    value=rng.gauss(62, 2),
                    unit="bpm",
                ),
                Sample(instant=at(day, 7, 10), metric_type="sleep_hours", value=sleep, unit="h"),
                Sample(instant=at(day, 21), metric_type="energy", value=energy),
            ]
        )
        store.extend(
            Sample(
                instant=at(day, hour),
                metric_type="water",
                value=rng.choice([250, 330, 500]),
                unit="ml",
            )
            for hour in (9, 13, 18)
        )

    # Elevated pain for the last four evenings, each just before local midnight
    for offset in range(4):
        evening = at(today - timedelta(days=offset), 23, 40)
        store.add(Sample(instant=evening, metric_type="pain", value=6.0 + offset % 2))

    store.add(Sample(instant=at(today, 8), metric_type="resting_hr", value=88.0, unit="bpm"))
    store.add(
        Sample(
            instant=at(today, 8),
            metric_type="ibuprofen",
            value=400.0,
            unit="mg",
            category=Category.MEDICATION,
        )
    )
    return store


def demo_trends(analytics: HealthAnalytics) -> None:
    console.print(Panel("📈 Trends", style="blue"))
    table = Table(title="Weight")
    table.add_column("Period", style="cyan")
    table.add_column("Buckets", style="white")
    table.add_column("Direction", style="white")
    table.add_column("Slope", style="white")
    table.add_column("Projection", style="white")

    for period in Period:
        result = analytics.trend.compute("weight", period)
        if result.insufficient_data:
            table.add_row(period.value, str(len(result.buckets)), "insufficient data", "-", "-")
            continue
        table.add_row(
            period.value,
            str(len(result.buckets)),
            result.direction.value,
            f"{result.slope:+.3f}",
            f"{result.projection:.1f}",
        )
    console.print(table)


def demo_correlation(analytics: HealthAnalytics) -> None:
    console.print(Panel("🔗 Correlation", style="blue"))
    for metric_a, metric_b in (("sleep_hours", "energy"), ("water", "resting_hr")):
        result = analytics.correlation.compute(metric_a, metric_b)
        console.print(
            f"{metric_a} vs {metric_b}: r = {result.coefficient:+.2f} "
            f"({result.strength.value}, {result.paired_count} days)"
        )


def demo_anomalies(analytics: HealthAnalytics) -> None:
    console.print(Panel("🚨 Anomalies", style="blue"))
    report = analytics.anomaly.detect()
    console.print(report.summary, style="yellow" if report.anomalies else "green")
    for anomaly in report.anomalies:
        console.print(f"  [{anomaly.severity.value.upper()}] {anomaly.summary}")
    if report.insufficient_types:
        console.print(f"  Not enough history: {', '.join(report.insufficient_types)}")


def demo_status(analytics: HealthAnalytics) -> None:
    console.print(Panel("🩺 Status", style="blue"))
    for alert in analytics.alerts.scan():
        console.print(
            f"{alert.metric_type} at or above {alert.threshold:g} for "
            f"{alert.consecutive_days} days (latest {alert.latest_value:g})",
            style="red",
        )
    console.print(f"Logging streak: {analytics.streaks.logging_streak()} days")

    goals = [
        Goal(metric_type="water", target_value=2000, direction=GoalDirection.ABOVE),
        Goal(
            metric_type="weight",
            target_value=80,
            direction=GoalDirection.BELOW,
            timeframe=GoalTimeframe.MONTHLY,
        ),
        Goal(metric_type="ibuprofen", target_value=1200, direction=GoalDirection.BELOW),
    ]
    table = Table(title="Goals")
    table.add_column("Goal", style="cyan")
    table.add_column("Progress", style="white")
    table.add_column("Met", style="white")
    for status in analytics.goals.status(goals):
        table.add_row(
            f"{status.goal.metric_type} {status.goal.direction.value} {status.goal.target_value:g}",
            status.progress or "no data",
            "✅" if status.is_met else "❌",
        )
    console.print(table)


def demo_report(analytics: HealthAnalytics) -> None:
    console.print(Panel("📋 Weekly Report", style="blue"))
    today = analytics.calendar.today
    report = analytics.reports.generate(today - timedelta(days=6), today)

    table = Table(title=f"{report.start} to {report.end}: {report.total_entries} entries")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="white")
    table.add_column("Mean", style="white")
    table.add_column("Min", style="white")
    table.add_column("Max", style="white")
    for summary in report.metrics:
        table.add_row(
            summary.metric_type,
            str(summary.count),
            f"{summary.mean:.1f}",
            f"{summary.minimum:.1f}",
            f"{summary.maximum:.1f}",
        )
    console.print(table)


def run_demo() -> None:
    console.print(Panel("🧪 Vitalcore - Analytics Engine Walkthrough", style="bold blue"))

    config = validate_config()
    configure_logging(config.logging)

    zone = ZoneInfo(config.timezone)
    today = datetime.now(zone).date()
    analytics = HealthAnalytics.from_config(seed_store(today, zone), config, today=today)
    console.print(f"Calendar: {config.timezone}, today is {today}", style="green")

    for step in (demo_trends, demo_correlation, demo_anomalies, demo_status, demo_report):
        console.print(f"\n{'=' * 60}")
        step(analytics)


if __name__ == "__main__":
    try:
        run_demo()
    except KeyboardInterrupt:
        console.print("\n👋 Demo stopped by user", style="yellow")
