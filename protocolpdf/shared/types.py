"""
Shared types used across modules.
"""

from dataclasses import dataclass


@dataclass
class RequestContext:
    """Per-request context propagated to logs and error responses."""
    request_id: str
