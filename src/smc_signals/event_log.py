"""
Signal Event Log - chronological audit trail of synthesis decisions.
"""

from dataclasses import asdict
from datetime import datetime, timezone
from typing import List, Optional

import pandas as pd

from .models import SignalEvent


class SignalEventLog:
    """Chronological audit trail. Append-only during execution.
    Queryable for debugging. Exportable to CSV/DataFrame.
    """

    def __init__(self):
        self.events: List[SignalEvent] = []

    def record(self, event: SignalEvent) -> None:
        """Record a new event."""
        self.events.append(event)

    def record_simple(
        self,
        pair: str,
        event_type: str,
        pattern: Optional[str] = None,
        direction: Optional[str] = None,
        price: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        **details,
    ) -> None:
        """Convenience method to record an event."""
        self.record(SignalEvent(
            timestamp=timestamp or datetime.now(timezone.utc),
            pair=pair,
            event_type=event_type,
            pattern=pattern,
            direction=direction,
            price=price,
            details=details,
        ))

    def get_events(
        self,
        event_type: Optional[str] = None,
        pair: Optional[str] = None,
        after: Optional[datetime] = None,
        before: Optional[datetime] = None,
    ) -> List[SignalEvent]:
        """Query events with filters."""
        result = self.events
        if event_type:
            result = [e for e in result if e.event_type == event_type]
        if pair:
            result = [e for e in result if e.pair == pair]
        if after:
            result = [e for e in result if e.timestamp >= after]
        if before:
            result = [e for e in result if e.timestamp < before]
        return result

    def to_dataframe(self) -> pd.DataFrame:
        """Export as DataFrame."""
        if not self.events:
            return pd.DataFrame()
        return pd.DataFrame([asdict(e) for e in self.events])

    def to_csv(self, path: str) -> None:
        """Export to CSV file."""
        self.to_dataframe().to_csv(path, index=False)

    def clear(self) -> None:
        """Clear all events."""
        self.events.clear()

    def __len__(self) -> int:
        return len(self.events)
