"""
Bulgur Cloud API client layer.

Provides async HTTP communication with the server and the authenticated
request pipeline on top of it.
"""

from bulgur_sync.api.http_client import AsyncHttpClient, Response, sanitize_for_log
from bulgur_sync.api.request_pipeline import NeedsRetryAfterReauth, RequestPipeline

__all__ = [
    "AsyncHttpClient",
    "NeedsRetryAfterReauth",
    "RequestPipeline",
    "Response",
    "sanitize_for_log",
]
