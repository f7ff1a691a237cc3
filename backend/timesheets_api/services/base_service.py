"""
Base service class.
Services hold the business rules for one area and commit their own units of work.
"""

from abc import ABC


class BaseService(ABC):
    """Base service class for all services."""
    pass
