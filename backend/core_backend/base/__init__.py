"""
Core backend base components.

Foundational classes that the app viewsets share so pagination, filtering
and ordering behave the same across the API.
"""

from .viewsets import BaseViewSet, ReadOnlyBaseViewSet, StandardPagination

__all__ = [
    'BaseViewSet',
    'ReadOnlyBaseViewSet',
    'StandardPagination',
]
