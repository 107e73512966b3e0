import io
import logging
import time
from typing import Dict, Optional

from PIL import Image

from processing import CompressionResult, MediaBlob, fallback, keep_smaller
from processing.config import get_image_config


# Formats Pillow can open but should not be asked to re-encode
_PASSTHROUGH_FORMATS = {"SVG", "ICO", "EPS"}


def process_image(image: MediaBlob, config: Optional[Dict] = None) -> CompressionResult:
    """Re-encode an image in its own format at the configured quality.

    The re-encoded bytes are kept only when strictly smaller. Any decoder or
    encoder error falls back to the original blob; this never raises.
    """
    start_time = time.time()
    config = config or get_image_config()

    try:
        original_image = Image.open(io.BytesIO(image.data))
        output_format = original_image.format
        if not output_format or output_format in _PASSTHROUGH_FORMATS:
            return fallback(image, f"Unsupported image format: {output_format}")

        save_kwargs = {"quality": config["quality"]}
        if config.get("optimize") and output_format in ("JPEG", "PNG"):
            save_kwargs["optimize"] = True
        if getattr(original_image, "n_frames", 1) > 1:
            save_kwargs["save_all"] = True  # keep every frame of animated GIF/WebP
        # Carry orientation and colour profile over; Pillow drops them otherwise
        for key in ("exif", "icc_profile"):
            if original_image.info.get(key):
                save_kwargs[key] = original_image.info[key]

        output_buffer = io.BytesIO()
        original_image.save(output_buffer, format=output_format, **save_kwargs)
        compressed_data = output_buffer.getvalue()
    except Exception as exc:
        logging.warning("Image compression failed for %s: %s", image.filename, str(exc))
        return fallback(image, str(exc), processing_time=time.time() - start_time)

    candidate = MediaBlob(
        data=compressed_data,
        filename=image.filename,
        mime_type=Image.MIME.get(output_format, image.mime_type),
    )
    result = keep_smaller(
        image,
        candidate,
        processing_time=time.time() - start_time,
        image_format=output_format,
    )
    logging.info(
        "Image %s: %s -> %s bytes (%s)",
        image.filename, image.size, len(compressed_data), result.outcome.value,
    )
    return result


def compress_image(image: MediaBlob) -> MediaBlob:
    """Best-effort image compression; returns the blob to upload."""
    return process_image(image).blob
