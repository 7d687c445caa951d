"""
Row models: one module per table.

Every model exposes to_dict(); the journey components only work on those
plain-dict snapshots.
"""
import uuid


def new_id():
    return str(uuid.uuid4())


def iso(value):
    """Serialize a datetime/date column value (None passes through)."""
    return value.isoformat() if value is not None else None
