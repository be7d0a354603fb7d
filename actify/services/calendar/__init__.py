"""Calendar scheduling: recurrence expansion, conflict checks and the service layer."""
from .recurrence import (
    ParsedRRule,
    Occurrence,
    parse_rrule,
    build_rrule,
    expand_series_to_range,
    make_occurrence_key,
    merge_occurrences_with_overrides,
    normalize_exdates,
)
from .conflicts import has_time_overlap, is_outside_business_hours, find_conflicts

__all__ = [
    "ParsedRRule",
    "Occurrence",
    "parse_rrule",
    "build_rrule",
    "expand_series_to_range",
    "make_occurrence_key",
    "merge_occurrences_with_overrides",
    "normalize_exdates",
    "has_time_overlap",
    "is_outside_business_hours",
    "find_conflicts",
]
