"""
Shared helpers for core_backend.
"""
