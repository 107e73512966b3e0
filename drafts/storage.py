"""Durable key-value backends for draft collections.

Each storage key holds one serialized collection as a string.
"""

import logging
import os
import tempfile
from typing import Dict, Optional
from urllib.parse import quote

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings


class DraftStorage:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(DraftStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage(DraftStorage):
    """One JSON file per key inside `directory`.

    Keys are percent-encoded into file names, so distinct keys never share a file.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, quote(key, safe="") + ".json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()

    def set(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        # Write next to the target and swap, so readers never see half a file
        fd, temp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(temp_path, path)
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.unlink(path)


class BlobStorage(DraftStorage):
    """One blob per key in an Azure Storage container."""

    def __init__(self, connection_string: Optional[str] = None, container: str = "drafts"):
        self.container = container
        self._service = BlobServiceClient.from_connection_string(
            connection_string or os.environ["AzureWebJobsStorage"]
        )
        self._container_ready = False

    def _ensure_container(self) -> None:
        if self._container_ready:
            return
        try:
            self._service.get_container_client(self.container).create_container()
        except ResourceExistsError:
            pass
        self._container_ready = True

    def get(self, key: str) -> Optional[str]:
        blob_client = self._service.get_blob_client(container=self.container, blob=key)
        try:
            return blob_client.download_blob().readall().decode("utf-8")
        except ResourceNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self._ensure_container()
        self._service.get_blob_client(container=self.container, blob=key).upload_blob(
            value.encode("utf-8"),
            overwrite=True,
            content_settings=ContentSettings(content_type="application/json"),
        )

    def remove(self, key: str) -> None:
        try:
            self._service.get_blob_client(container=self.container, blob=key).delete_blob()
        except ResourceNotFoundError:
            logging.warning("Draft blob not found for deletion: %s", key)


def get_draft_storage() -> DraftStorage:
    """Build the backend named by DRAFT_STORAGE (file, blob or memory)."""
    backend = os.environ.get("DRAFT_STORAGE", "file").lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "blob":
        return BlobStorage(container=os.environ.get("DRAFTS_CONTAINER", "drafts"))
    if backend == "file":
        directory = os.environ.get(
            "DRAFTS_DIR", os.path.join(os.path.expanduser("~"), ".cms_drafts")
        )
        return FileStorage(directory)
    raise ValueError(f"Unknown draft storage backend: {backend}")
