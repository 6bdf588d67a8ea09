"""
Bulgur sync client configuration.
"""

from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class BulgurSyncConfig:
    """
    Attributes:
        site: Default server base URL, used when no saved credentials exist.
        timeout: Request timeout in seconds.
        user_agent: User-Agent header value.
        max_concurrent_uploads: Maximum number of uploads in flight at once.
        folder_cache_max_size: Maximum number of folder listings to cache.
        persist_key: Key of the saved credential record.
        upload_chunk_size: Size of the chunks streamed for multipart uploads.
    """

    site: str | None = None
    timeout: float = 30.0
    user_agent: str = "BulgurSync-Python/0.1"
    max_concurrent_uploads: int = 2
    folder_cache_max_size: int = 256
    persist_key: str = "bulgur-cloud-auth"
    upload_chunk_size: int = 64 * 1024

    def __post_init__(self) -> None:
        if self.site is not None and not self.site.startswith(("http://", "https://")):
            msg = "site must be an http(s) URL"
            raise ValueError(msg)
        if self.timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if self.max_concurrent_uploads <= 0:
            msg = "max_concurrent_uploads must be positive"
            raise ValueError(msg)
        if self.folder_cache_max_size <= 0:
            msg = "folder_cache_max_size must be positive"
            raise ValueError(msg)
        if not self.persist_key:
            msg = "persist_key must not be empty"
            raise ValueError(msg)
        if self.upload_chunk_size <= 0:
            msg = "upload_chunk_size must be positive"
            raise ValueError(msg)
