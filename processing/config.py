"""Compression configuration profiles."""

import os
from typing import Dict, Any, Optional


def _env_seconds(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


# Still images are re-encoded in their own format at a fixed quality
DEFAULT_IMAGE_CONFIG = {
    "quality": 50,  # 0.5 quality factor on Pillow's 1-100 scale
    "optimize": True,
}


# Default encoding profile for canvas-style VP9 capture
DEFAULT_VIDEO_CONFIG = {
    # Resolution caps, applied width first then height
    "max_width": 1920,
    "max_height": 1080,

    # Adaptive bitrate: 70% of the source bitrate, clamped
    "bitrate_factor": 0.7,
    "min_bitrate": 500_000,  # 500 kbps floor
    "max_bitrate": 2_500_000,  # 2.5 Mbps ceiling

    # Capture settings
    "frame_rate": 30,
    "codec": "libvpx-vp9",
    "container": "webm",
    "extension": ".webm",
    "mime_type": "video/webm",
    "pixel_format": "rgba",  # raw frames passed between decoder and encoder
    "deadline": "good",  # libvpx quality/speed tradeoff
    "cpu_used": 4,

    # Binaries
    "ffmpeg": os.getenv("FFMPEG_BINARY", "ffmpeg"),
    "ffprobe": os.getenv("FFPROBE_BINARY", "ffprobe"),

    # Capture stops only when the source ends unless this is set
    "max_processing_time": _env_seconds("MAX_PROCESSING_TIME"),
    "probe_timeout": 10,
}


# Fast profile (faster encoding, larger output)
FAST_CONFIG = {
    **DEFAULT_VIDEO_CONFIG,
    "deadline": "realtime",
    "cpu_used": 8,
}


def get_image_config(**overrides: Any) -> Dict[str, Any]:
    config = DEFAULT_IMAGE_CONFIG.copy()
    config.update(overrides)
    return config


def get_video_config(profile: str = "default", **overrides: Any) -> Dict[str, Any]:
    """Encoding settings for a profile, with per-call overrides on top.

    "default" encodes VP9 with the good deadline at cpu-used 4. "fast" switches
    to the realtime deadline at cpu-used 8, trading size for speed. Unknown
    profile names use the default. Overrides win over profile values, so
    `max_processing_time=30` bounds a single capture run.
    """
    profiles = {
        "default": DEFAULT_VIDEO_CONFIG,
        "fast": FAST_CONFIG,
    }

    base_config = profiles.get(profile, DEFAULT_VIDEO_CONFIG).copy()
    base_config.update(overrides)

    return base_config
