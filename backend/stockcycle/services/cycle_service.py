# Overview: Pure cycle arithmetic; maps a reference time to its weekly cycle and windows.

"""
Cycle Calculator

A cycle is anchored on a Monday (ISO week start). Each cycle has two windows,
both half-open [start, end) at midnight:

    intake window:     Saturday before the Monday  ..  Friday of that week
                       [anchor - 2 days, anchor + 5 days)
    reporting window:  Saturday and Sunday after the intake window
                       [anchor + 5 days, anchor + 7 days)

Sunday belongs to the week that started on the previous Monday (ISO
numbering), never to a new week.

Nothing here reads a clock. Callers pass "now" explicitly (routes use
time_utils.utcnow()), which keeps every computation reproducible.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta


INTAKE_OFFSET_START = timedelta(days=-2)
INTAKE_OFFSET_END = timedelta(days=5)
REPORTING_OFFSET_START = timedelta(days=5)
REPORTING_OFFSET_END = timedelta(days=7)


@dataclass(frozen=True)
class Window:
    """Half-open time interval [start, end)."""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class Cycle:
    anchor: date
    intake: Window
    reporting: Window

    def to_dict(self) -> dict:
        return {
            "week_start_date": self.anchor.isoformat(),
            "intake_window": self.intake.to_dict(),
            "reporting_window": self.reporting.to_dict(),
        }


def _as_date(reference: date | datetime) -> date:
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def anchor_for(reference: date | datetime) -> date:
    """Monday of the reference's ISO week. Time-of-day is ignored."""
    day = _as_date(reference)
    # isoweekday: Monday=1 .. Sunday=7
    return day - timedelta(days=day.isoweekday() - 1)


def intake_window(anchor: date) -> Window:
    start = _midnight(anchor)
    return Window(start + INTAKE_OFFSET_START, start + INTAKE_OFFSET_END)


def reporting_window(anchor: date) -> Window:
    start = _midnight(anchor)
    return Window(start + REPORTING_OFFSET_START, start + REPORTING_OFFSET_END)


def cycle_for(reference: date | datetime) -> Cycle:
    anchor = anchor_for(reference)
    return Cycle(anchor=anchor, intake=intake_window(anchor), reporting=reporting_window(anchor))



def intake_anchor_for(moment: datetime) -> date:
    """
    Anchor of the cycle whose intake window contains the moment.

    Saturday and Sunday orders land in the following Monday's cycle, unlike
    anchor_for, which keeps them in the week they fall in.
    """
    return anchor_for(moment - INTAKE_OFFSET_START)
