"""End date synthesis for listings that only carry a start date."""
import re
from datetime import date, timedelta
from typing import Optional

PERMANENT_EXHIBITION_DAYS = 3650
TEMPORARY_EXHIBITION_DAYS = 120

PERMANENT_MARKERS = ('wystawa stała', 'wystawy stałe', 'wydarzenie stałe')
TEMPORARY_MARKERS = ('wystawy czasowe',)

_EXHIBITION_TITLE = re.compile(r'\b(wystawa|ekspozycja|exhibition)\b', re.IGNORECASE)


def infer_end_date(title: str, text: Optional[str], date_start: date) -> date:
    """
    Guess an end date for an event listed without one.

    Permanent exhibitions run for ten years, temporary exhibitions for
    four months, anything else is treated as a single-day event.

    Args:
        title: Event title
        text: Surrounding listing text (description, category labels)
        date_start: Event start date

    Returns:
        Synthesized end date
    """
    text = (text or '').lower()

    if any(marker in text for marker in PERMANENT_MARKERS):
        return date_start + timedelta(days=PERMANENT_EXHIBITION_DAYS)

    if _EXHIBITION_TITLE.search(title or '') or any(
        marker in text for marker in TEMPORARY_MARKERS
    ):
        return date_start + timedelta(days=TEMPORARY_EXHIBITION_DAYS)

    return date_start
