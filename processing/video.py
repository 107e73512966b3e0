import json
import logging
import math
import os
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from processing import CompressionResult, MediaBlob, fallback, keep_smaller, retag_filename
from processing.capture import FfmpegFrameSource, FfmpegRecorder, capture_frames
from processing.config import get_video_config


@dataclass(frozen=True)
class VideoInfo:
    width: int
    height: int
    duration: float  # seconds; math.inf when the container does not report one
    codec_name: Optional[str] = None


def _parse_duration(value) -> float:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return math.inf
    return duration if duration >= 0 else math.inf


def _get_video_info(input_path: str, config: Optional[Dict] = None) -> Optional[VideoInfo]:
    """Get video metadata using ffprobe.

    Returns:
        VideoInfo with width, height and duration, or None if failed
    """
    config = config or get_video_config()
    try:
        cmd = [
            config.get("ffprobe", "ffprobe"),
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=codec_name,width,height,duration:format=duration",
            "-of", "json",
            input_path,
        ]
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=config.get("probe_timeout", 10)
        )

        if result.returncode != 0:
            logging.warning("ffprobe failed: %s", result.stderr)
            return None

        data = json.loads(result.stdout)
        if not data.get("streams"):
            return None

        stream = data["streams"][0]
        duration = _parse_duration(data.get("format", {}).get("duration"))
        if math.isinf(duration):
            duration = _parse_duration(stream.get("duration"))

        return VideoInfo(
            width=int(stream["width"]),
            height=int(stream["height"]),
            duration=duration,
            codec_name=stream.get("codec_name"),
        )
    except Exception as exc:
        logging.warning("Failed to get video info: %s", str(exc))
        return None


def compute_target_dimensions(
    width: int, height: int, max_width: int = 1920, max_height: int = 1080
) -> Tuple[int, int]:
    """Clamp a raster to the caps, preserving aspect ratio.

    Width is clamped first and height second. When both exceed their caps
    by different factors this differs from a single min-ratio clamp. Sides
    are floored to whole pixels, never below one.
    """
    target_width = float(width)
    target_height = float(height)

    if target_width > max_width:
        target_height = target_height * max_width / target_width
        target_width = max_width

    if target_height > max_height:
        target_width = target_width * max_height / target_height
        target_height = max_height

    # Extreme aspect ratios must not truncate a side to zero
    return max(1, int(target_width)), max(1, int(target_height))


def compute_target_bitrate(
    file_size: int,
    duration: float,
    factor: float = 0.7,
    min_bitrate: int = 500_000,
    max_bitrate: int = 2_500_000,
) -> int:
    """Target bitrate in bits/s: 70% of the source bitrate, clamped.

    An unknown (infinite) duration reads as a zero source bitrate and lands on
    the floor; a zero duration reads as infinite and lands on the ceiling.
    """
    if duration == 0:
        original_bitrate = math.inf
    elif math.isinf(duration) or math.isnan(duration):
        original_bitrate = 0.0
    else:
        original_bitrate = file_size * 8 / duration

    return round(min(max(original_bitrate * factor, min_bitrate), max_bitrate))


def process_video(
    video: MediaBlob,
    profile: str = "default",
    stop_event: Optional[threading.Event] = None,
    probe: Callable[..., Optional[VideoInfo]] = _get_video_info,
    source_factory: Callable = FfmpegFrameSource,
    recorder_factory: Callable = FfmpegRecorder,
    **overrides,
) -> CompressionResult:
    """Re-encode a video to VP9/WebM by capturing its frames at a capped size.

    Args:
        video: Original video blob
        profile: Encoding profile name (default, fast)
        stop_event: Set it to end capture early, as if playback had paused
        probe: Metadata reader, ffprobe by default
        source_factory: Builds the frame source (input_path, width, height, config)
        recorder_factory: Builds the recorder (output_path, width, height, bitrate, config)
        **overrides: Override specific config values

    Returns:
        CompressionResult; the blob is the original unless the WebM is smaller.
        Never raises.
    """
    logging.info("=== VIDEO PROCESSING STARTED for %s ===", video.filename)
    start_time = time.time()
    config = get_video_config(profile, **overrides)

    input_path = None
    output_path = None
    try:
        suffix = "." + video.extension if video.extension else ".bin"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as temp_input:
            input_path = temp_input.name
            temp_input.write(video.data)
        with tempfile.NamedTemporaryFile(suffix=config["extension"], delete=False) as temp_output:
            output_path = temp_output.name

        info = probe(input_path, config)
        if info is None:
            return fallback(video, "Could not read video metadata")

        width, height = compute_target_dimensions(
            info.width, info.height, config["max_width"], config["max_height"]
        )
        bitrate = compute_target_bitrate(
            video.size,
            info.duration,
            config["bitrate_factor"],
            config["min_bitrate"],
            config["max_bitrate"],
        )
        logging.info(
            "Native %dx%d, %.2fs -> capture %dx%d at %d bps",
            info.width, info.height, info.duration, width, height, bitrate,
        )

        source = source_factory(input_path, width, height, config)
        recorder = recorder_factory(output_path, width, height, bitrate, config)
        frames = capture_frames(
            source, recorder, stop_event, config.get("max_processing_time")
        )

        with open(output_path, "rb") as compressed_file:
            compressed_data = compressed_file.read()

        if frames == 0 or not compressed_data:
            logging.warning("No frames captured for %s, keeping original", video.filename)
            return fallback(
                video, "No frames captured", frames=frames,
                processing_time=time.time() - start_time,
            )

        candidate = MediaBlob(
            data=compressed_data,
            filename=retag_filename(video.filename, config["extension"]),
            mime_type=config["mime_type"],
        )
        result = keep_smaller(
            video,
            candidate,
            width=width,
            height=height,
            target_bitrate=bitrate,
            frames=frames,
            processing_time=time.time() - start_time,
        )
        logging.info(
            "Original size: %s, Compressed size: %s, Outcome: %s",
            video.size, len(compressed_data), result.outcome.value,
        )
        return result

    except Exception as exc:
        logging.warning("Video compression failed for %s: %s", video.filename, str(exc))
        return fallback(video, str(exc), processing_time=time.time() - start_time)

    finally:
        for path in (input_path, output_path):
            if path and os.path.exists(path):
                os.unlink(path)


def compress_video(video: MediaBlob) -> MediaBlob:
    """Best-effort video compression; returns the blob to upload."""
    return process_video(video).blob
