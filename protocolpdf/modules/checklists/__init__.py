"""
Checklist lookup against the application's data proxy.
"""

from .client import ChecklistClient, ChecklistClientError, ChecklistRecord

__all__ = ["ChecklistClient", "ChecklistClientError", "ChecklistRecord"]
