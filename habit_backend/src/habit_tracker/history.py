"""
Per-day views over the completion ledger.

Everything here is a pure function of a ledger snapshot and a reference date;
nothing is cached between reads.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Tuple

from .models import CompletionRecordEntity
from .utils import previous_day

DayGroup = Tuple[date, List[CompletionRecordEntity]]


@dataclass(frozen=True)
class HistoryPartition:
    recent: List[DayGroup] = field(default_factory=list)
    older: List[DayGroup] = field(default_factory=list)


@dataclass(frozen=True)
class DaySummary:
    day: date
    label: str
    completed: int
    total_habits: int
    records: List[CompletionRecordEntity]


@dataclass(frozen=True)
class History:
    reference_date: date
    recent: List[DaySummary]
    older: List[DaySummary]


# PUBLIC_INTERFACE
def group_by_day(records: Iterable[CompletionRecordEntity]) -> Dict[date, List[CompletionRecordEntity]]:
    """Group records by calendar day, keeping their order within each day."""
    grouped: Dict[date, List[CompletionRecordEntity]] = {}
    for record in records:
        grouped.setdefault(record["day"], []).append(record)
    return grouped


def is_recent(day: date, reference: date) -> bool:
    return day == reference or day == previous_day(reference)


# PUBLIC_INTERFACE
def partition(grouped: Dict[date, List[CompletionRecordEntity]], reference: date) -> HistoryPartition:
    """
    Split day groups into today+yesterday and everything else (future days
    included), each sorted by day descending.
    """
    recent: List[DayGroup] = []
    older: List[DayGroup] = []
    for day, records in grouped.items():
        (recent if is_recent(day, reference) else older).append((day, records))
    recent.sort(key=lambda g: g[0], reverse=True)
    older.sort(key=lambda g: g[0], reverse=True)
    return HistoryPartition(recent=recent, older=older)


# PUBLIC_INTERFACE
def total_habits_on(records: Iterable[CompletionRecordEntity], day: date) -> int:
    """Habit count stamped on the first record of ``day``, or 0 if there is none."""
    for record in records:
        if record["day"] == day:
            return record["total_habits"]
    return 0


def day_label(day: date, reference: date) -> str:
    if day == reference:
        return "Today"
    if day == previous_day(reference):
        return "Yesterday"
    # e.g. "Monday, 8 January"
    return f"{day.strftime('%A')}, {day.day} {day.strftime('%B')}"


def _summaries(groups: List[DayGroup], reference: date) -> List[DaySummary]:
    return [
        DaySummary(
            day=day,
            label=day_label(day, reference),
            completed=len(records),
            total_habits=total_habits_on(records, day),
            records=records,
        )
        for day, records in groups
    ]


# PUBLIC_INTERFACE
def build_history(records: Iterable[CompletionRecordEntity], reference: date) -> History:
    """The history screen: "N/M completed" summaries for recent and older days."""
    parts = partition(group_by_day(records), reference)
    return History(
        reference_date=reference,
        recent=_summaries(parts.recent, reference),
        older=_summaries(parts.older, reference),
    )
