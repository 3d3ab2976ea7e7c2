"""
Pure domain layer.

Value objects and helpers with NO dependencies on:
- ORM (SQLAlchemy)
- Record Store
- I/O

Time only enters through an injected Clock.
"""

from invoicing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from invoicing_kernel.domain.dates import coerce_instant, instant_or_none, to_iso
from invoicing_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "coerce_instant",
    "instant_or_none",
    "to_iso",
    "Guard",
    "Transition",
    "Workflow",
]
