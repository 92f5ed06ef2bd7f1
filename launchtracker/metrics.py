"""Derived metrics: KPI status, trend, alert triggering and completion figures.

Everything here is a pure function of stored values so it can be reused by the
API layer, the report and tests without a database.

Status bands for a KPI with target ``t`` and warning threshold ``w``:

=========  ====================  =========================  ==========
target     green                 yellow                     red
=========  ====================  =========================  ==========
minimum    ``v >= t``            ``v >= t * (1 - w)``       otherwise
maximum    ``v <= t``            ``v <= t * (1 + w)``       otherwise
=========  ====================  =========================  ==========
"""
from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Sequence

from launchtracker.enums import KpiResult, KpiStatus, KpiTargetType, KpiTrend

DEFAULT_WARNING_THRESHOLD = 0.10
DEFAULT_ALERT_THRESHOLD = 0.10
TREND_WINDOW = 3
TREND_CHANGE_PERCENT = 5.0


def calculate_kpi_status(
    value: float,
    target: float,
    target_type: KpiTargetType | str,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> KpiStatus:
    if KpiTargetType(target_type) is KpiTargetType.minimum:
        if value >= target:
            return KpiStatus.green
        if value >= target * (1 - warning_threshold):
            return KpiStatus.yellow
        return KpiStatus.red
    if value <= target:
        return KpiStatus.green
    if value <= target * (1 + warning_threshold):
        return KpiStatus.yellow
    return KpiStatus.red


def kpi_status_for(
    latest_value: float | None,
    target: float,
    target_type: KpiTargetType | str,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> KpiStatus:
    """Status of a KPI given its latest entry; no data yet counts as green."""
    if latest_value is None:
        return KpiStatus.green
    return calculate_kpi_status(latest_value, target, target_type, warning_threshold)


def calculate_trend(values: Sequence[float], min_points: int = 2) -> KpiTrend:
    """Trend over the last three values (oldest first, most recent last)."""
    if len(values) < min_points:
        return KpiTrend.stable
    recent = list(values)[-TREND_WINDOW:]
    if len(recent) < 2:
        return KpiTrend.stable
    first, last = recent[0], recent[-1]
    change = (last - first) / max(abs(first), 1) * 100
    if change > TREND_CHANGE_PERCENT:
        return KpiTrend.up
    if change < -TREND_CHANGE_PERCENT:
        return KpiTrend.down
    return KpiTrend.stable


def should_alert(
    value: float,
    target: float,
    target_type: KpiTargetType | str,
    threshold: float = DEFAULT_ALERT_THRESHOLD,
) -> bool:
    if KpiTargetType(target_type) is KpiTargetType.minimum:
        return value < target * (1 - threshold)
    return value > target * (1 + threshold)


def format_number(value: float) -> str:
    """Render a float the way a JSON client would: ``95.0`` -> ``95``, ``0.5`` -> ``0.5``."""
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def alert_message(kpi_name: str, value: float, target_type: KpiTargetType | str, target: float) -> str:
    kind = KpiTargetType(target_type).value
    return (
        f"{kpi_name} is outside target range: {format_number(value)} "
        f"(target: {kind} {format_number(target)})"
    )


def target_met(
    final_value: float | None, target: float, target_type: KpiTargetType | str,
) -> KpiResult:
    if final_value is None:
        return KpiResult.no_data
    if KpiTargetType(target_type) is KpiTargetType.minimum:
        met = final_value >= target
    else:
        met = final_value <= target
    return KpiResult.met if met else KpiResult.missed


def completion_percent(completed: int, total: int) -> int:
    if total == 0:
        return 0
    # half-up, not banker's rounding
    return math.floor(completed / total * 100 + 0.5)


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def in_window(day: date, start: date, end: date) -> bool:
    return start <= day <= end
