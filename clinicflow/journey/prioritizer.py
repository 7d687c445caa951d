"""
Journey ordering: stalled-and-actionable first, then actionable, then oldest.
"""
from typing import List

from clinicflow.journey.stages import is_actionable


def priority_key(journey):
    actionable = is_actionable(journey.staff_action)
    urgent = journey.is_stalled and actionable
    return (not urgent, not actionable, -journey.days_in_pipeline)


def prioritize(journeys: List) -> List:
    """Return a new list in dashboard order (sorted() is stable)."""
    return sorted(journeys, key=priority_key)
