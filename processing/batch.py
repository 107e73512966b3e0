import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence

from processing import MediaBlob
from processing.image import compress_image
from processing.video import compress_video


def compress_media(blob: MediaBlob) -> MediaBlob:
    """Route a blob to the image or video path by MIME type."""
    if blob.mime_type.startswith("image/"):
        return compress_image(blob)
    if blob.mime_type.startswith("video/"):
        return compress_video(blob)
    logging.info("No compressor for %s (%s); passing through", blob.filename, blob.mime_type)
    return blob


def compress_batch(
    blobs: Sequence[MediaBlob],
    compress: Callable[[MediaBlob], MediaBlob] = compress_media,
    max_workers: int = 4,
) -> List[MediaBlob]:
    """Compress independent blobs concurrently.

    Results come back in input order, so result[i] always belongs to blobs[i].
    """
    if not blobs:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(compress, blobs))
