"""pytest configuration: make the top-level packages importable."""

import io
import sys
from pathlib import Path

import pytest

root_path = Path(__file__).parent.parent
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))

from processing import MediaBlob  # noqa: E402


@pytest.fixture
def noisy_jpeg() -> MediaBlob:
    """High-quality JPEG of random noise, so re-encoding at 50 shrinks it."""
    from PIL import Image
    import random

    rng = random.Random(1234)
    pixels = bytes(rng.getrandbits(8) for _ in range(256 * 256 * 3))
    image = Image.frombytes("RGB", (256, 256), pixels)
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=95)
    return MediaBlob(data=buffer.getvalue(), filename="noise.jpg", mime_type="image/jpeg")
