"""Storage API endpoints (listing, mutations, uploads)."""

from bulgur_sync.api.http_client import ProgressCallback, Response
from bulgur_sync.api.request_pipeline import RequestPipeline
from bulgur_sync.core.paths import storage_url
from bulgur_sync.models.storage import (
    CreateFolder,
    MakePathToken,
    Move,
    StorageAction,
    UploadFile,
)


async def list_folder(pipeline: RequestPipeline, path: str) -> Response:
    """Get the entries of a folder."""
    return await pipeline.request("GET", storage_url(path, folder=True))


async def storage_action(pipeline: RequestPipeline, path: str, action: StorageAction) -> Response:
    """Send one StorageAction for a path."""
    return await pipeline.request("POST", storage_url(path), json=action.to_json())


async def create_folder(pipeline: RequestPipeline, path: str) -> Response:
    return await storage_action(pipeline, path, CreateFolder())


async def move(pipeline: RequestPipeline, path: str, new_path: str) -> Response:
    return await storage_action(pipeline, path, Move(new_path=new_path))


async def make_path_token(pipeline: RequestPipeline, path: str) -> Response:
    return await storage_action(pipeline, path, MakePathToken())


async def delete_path(pipeline: RequestPipeline, path: str) -> Response:
    return await pipeline.request("DELETE", storage_url(path))


async def head_path(pipeline: RequestPipeline, path: str) -> Response:
    return await pipeline.request("HEAD", storage_url(path))


async def path_meta(pipeline: RequestPipeline, path: str) -> Response:
    # META is a non-standard verb the server answers with file metadata
    return await pipeline.request("META", storage_url(path))


async def read_file(pipeline: RequestPipeline, path: str) -> Response:
    return await pipeline.request("GET", storage_url(path))


async def upload_file(
    pipeline: RequestPipeline,
    path: str,
    upload: UploadFile,
    on_progress: ProgressCallback | None = None,
) -> Response:
    """
    Upload a single file into the folder at ``path``.

    The multipart form has exactly one field, named after the file.
    """
    return await pipeline.request(
        "PUT",
        storage_url(path),
        files={upload.name: upload},
        on_progress=on_progress,
    )
