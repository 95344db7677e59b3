"""Database models."""

from cin_agenda.models.appointments import appointments, metadata
from cin_agenda.models.blocked_dates import blocked_dates
from cin_agenda.models.cancellations import cancellation_records, cpf_blocks
from cin_agenda.models.locations import locations

__all__ = [
    "appointments",
    "blocked_dates",
    "cancellation_records",
    "cpf_blocks",
    "locations",
    "metadata",
]
