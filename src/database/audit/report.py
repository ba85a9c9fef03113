"""
Plain-text rendering of recorded anomalies.
"""

from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, Optional, Sequence

from models import Anomaly

REPORT_HEADER = "===== DATABASE ANOMALIES REPORT ====="
REPORT_SEPARATOR = "---------------------------------------"
NO_ANOMALIES_MESSAGE = "No anomalies detected (or the analysis has not been run)."


def _format_timestamp(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else "unknown"


def generate_text_report(anomalies: Sequence[Anomaly], generated_at: Optional[datetime] = None) -> str:
    """
    Render anomalies as a numbered plain-text report.

    Args:
        anomalies: Anomalies in the order they should be listed
        generated_at: Report timestamp (default: now)

    Returns:
        Report text, or a single line when there is nothing to report
    """
    if not anomalies:
        return NO_ANOMALIES_MESSAGE

    generated_at = generated_at or datetime.now()
    lines = [
        REPORT_HEADER,
        f"Generated at: {generated_at.isoformat()}",
        "",
        f"Total anomalies: {len(anomalies)}",
        "",
    ]

    for index, anomaly in enumerate(anomalies, start=1):
        lines.append(f"{index}) [{_format_timestamp(anomaly.timestamp)}] Type: {anomaly.type}")
        lines.append(f"   Description: {anomaly.description}")
        lines.append(f"   Table: {anomaly.affected_table}")
        if anomaly.affected_data:
            lines.append(f"   Details: {anomaly.affected_data}")
        lines.append(REPORT_SEPARATOR)

    return "\n".join(lines) + "\n"


def summarize(anomalies: Iterable[Anomaly]) -> Dict[str, int]:
    """Count anomalies by type."""
    return dict(Counter(anomaly.type for anomaly in anomalies))
