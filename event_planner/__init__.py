"""
Event Planner scheduling engine.

Recurrence expansion, scheduling conflict detection and solidification of
recurring occurrences into concrete commitments.
"""

__version__ = "0.1.0"
