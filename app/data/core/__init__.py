"""
Core models package for the operations console
"""

from .record_base import RecordBase

__all__ = [
    'RecordBase',
]
