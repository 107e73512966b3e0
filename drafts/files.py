"""Helpers for storing files inside draft payloads as base64 data URLs."""

import base64
import binascii
from typing import TypedDict

from processing import MediaBlob


class FileData(TypedDict):
    name: str
    type: str
    base64: str  # full data URL: "data:<mime>;base64,<payload>"


def file_to_data(blob: MediaBlob) -> FileData:
    encoded = base64.b64encode(blob.data).decode("ascii")
    return {
        "name": blob.filename,
        "type": blob.mime_type,
        "base64": f"data:{blob.mime_type};base64,{encoded}",
    }


def data_to_file(file_data: FileData) -> MediaBlob:
    """Rebuild a blob from a stored data URL.

    Raises:
        ValueError: if the data URL is malformed
    """
    header, sep, payload = file_data["base64"].partition(",")
    if not sep or not header.startswith("data:"):
        raise ValueError(f"Not a data URL: {header[:40]}")

    header_mime = header[len("data:"):].split(";", 1)[0]
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload for {file_data.get('name')}") from exc

    return MediaBlob(
        data=data,
        filename=file_data["name"],
        mime_type=file_data.get("type") or header_mime or "application/octet-stream",
    )
