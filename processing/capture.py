"""Frame capture loop between a decoder and a VP9 recorder.

The decoder plays the source scaled to the target raster and hands out one
raw frame per tick; the recorder re-encodes whatever it is fed. The loop ends
when the source runs out of frames or when the stop event is set.
"""

import logging
import subprocess
import threading
import time
from typing import Dict, List, Optional


class FrameSource:
    """Yields raw frames of a fixed size until the media ends."""

    def open(self) -> None:
        raise NotImplementedError

    def read_frame(self) -> Optional[bytes]:
        """Block until the next frame is ready; None once playback has ended."""
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class FrameRecorder:
    """Consumes raw frames and produces an encoded file."""

    def start(self) -> None:
        raise NotImplementedError

    def write_frame(self, frame: bytes) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def abort(self) -> None:
        raise NotImplementedError


class CaptureTimeout(RuntimeError):
    pass


def capture_frames(
    source: FrameSource,
    recorder: FrameRecorder,
    stop_event: Optional[threading.Event] = None,
    max_seconds: Optional[float] = None,
) -> int:
    """Drive one draw per source frame into the recorder.

    Returns the number of frames captured. The source and recorder are always
    released; the recorder is finalised only when the loop ends normally.
    """
    start_time = time.time()
    frames = 0
    source.open()
    try:
        recorder.start()
        try:
            while stop_event is None or not stop_event.is_set():
                if max_seconds is not None and time.time() - start_time > max_seconds:
                    raise CaptureTimeout(f"Capture exceeded {max_seconds}s")
                frame = source.read_frame()
                if frame is None:
                    break
                recorder.write_frame(frame)
                frames += 1
        except BaseException:
            recorder.abort()
            raise
        recorder.stop()
    finally:
        source.close()

    logging.info("Captured %d frames in %.2fs", frames, time.time() - start_time)
    return frames


def _terminate(proc: Optional[subprocess.Popen]) -> None:
    if proc is not None and proc.poll() is None:
        proc.kill()
        proc.wait()


class FfmpegFrameSource(FrameSource):
    """Decodes a video file into raw frames scaled to width x height."""

    def __init__(self, input_path: str, width: int, height: int, config: Dict):
        self.input_path = input_path
        self.width = width
        self.height = height
        self.config = config
        self.frame_size = width * height * 4  # rgba
        self._proc: Optional[subprocess.Popen] = None
        self._stderr = b""
        self._stderr_thread: Optional[threading.Thread] = None

    def build_cmd(self) -> List[str]:
        return [
            self.config.get("ffmpeg", "ffmpeg"),
            "-v", "error",
            "-nostdin",
            "-i", self.input_path,
            "-an",
            "-vf", f"scale={self.width}:{self.height}",
            "-r", str(self.config.get("frame_rate", 30)),
            "-pix_fmt", self.config.get("pixel_format", "rgba"),
            "-f", "rawvideo",
            "-",
        ]

    def _drain_stderr(self) -> None:
        if self._proc is not None and self._proc.stderr is not None:
            self._stderr = self._proc.stderr.read()

    def open(self) -> None:
        cmd = self.build_cmd()
        logging.info("Starting decoder: %s", " ".join(cmd))
        self._proc = subprocess.Popen(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, stdin=subprocess.DEVNULL
        )
        # stderr must be drained alongside stdout or a full pipe stalls the decoder
        self._stderr_thread = threading.Thread(target=self._drain_stderr, daemon=True)
        self._stderr_thread.start()

    def read_frame(self) -> Optional[bytes]:
        if self._proc is None or self._proc.stdout is None:
            raise RuntimeError("Decoder is not running")

        chunks = []
        remaining = self.frame_size
        while remaining:
            chunk = self._proc.stdout.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)

        if remaining == self.frame_size:
            # End of stream: make sure the decoder finished cleanly
            returncode = self._proc.wait()
            self._join_stderr()
            if returncode != 0:
                raise RuntimeError(f"FFmpeg failed: {self._stderr.decode(errors='replace')}")
            return None
        if remaining:
            # Truncated trailing frame, treat as end of playback
            logging.warning("Discarding partial frame (%d of %d bytes)",
                            self.frame_size - remaining, self.frame_size)
            return None
        return b"".join(chunks)

    def _join_stderr(self) -> None:
        if self._stderr_thread is not None:
            self._stderr_thread.join()
            self._stderr_thread = None

    def close(self) -> None:
        _terminate(self._proc)
        self._join_stderr()
        if self._proc is not None:
            for stream in (self._proc.stdout, self._proc.stderr):
                if stream is not None:
                    stream.close()
        self._proc = None


class FfmpegRecorder(FrameRecorder):
    """Encodes raw frames to VP9-in-WebM at a fixed target bitrate."""

    def __init__(self, output_path: str, width: int, height: int, bitrate: int, config: Dict):
        self.output_path = output_path
        self.width = width
        self.height = height
        self.bitrate = bitrate
        self.config = config
        self._proc: Optional[subprocess.Popen] = None
        self._stderr = b""
        self._stderr_thread: Optional[threading.Thread] = None

    def build_cmd(self) -> List[str]:
        return [
            self.config.get("ffmpeg", "ffmpeg"),
            "-v", "error",
            "-f", "rawvideo",
            "-pix_fmt", self.config.get("pixel_format", "rgba"),
            "-s", f"{self.width}x{self.height}",
            "-r", str(self.config.get("frame_rate", 30)),
            "-i", "-",
            "-an",
            "-c:v", self.config.get("codec", "libvpx-vp9"),
            "-b:v", str(self.bitrate),
            "-deadline", self.config.get("deadline", "good"),
            "-cpu-used", str(self.config.get("cpu_used", 4)),
            "-pix_fmt", "yuv420p",
            "-f", self.config.get("container", "webm"),
            "-y", self.output_path,
        ]

    def _drain_stderr(self) -> None:
        if self._proc is not None and self._proc.stderr is not None:
            self._stderr = self._proc.stderr.read()

    def start(self) -> None:
        cmd = self.build_cmd()
        logging.info("Starting encoder: %s", " ".join(cmd))
        self._proc = subprocess.Popen(
            cmd, stdin=subprocess.PIPE, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE
        )
        self._stderr_thread = threading.Thread(target=self._drain_stderr, daemon=True)
        self._stderr_thread.start()

    def write_frame(self, frame: bytes) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise RuntimeError("Encoder is not running")
        self._proc.stdin.write(frame)

    def stop(self) -> None:
        if self._proc is None:
            return
        if self._proc.stdin is not None:
            self._proc.stdin.close()
        returncode = self._proc.wait()
        if self._stderr_thread is not None:
            self._stderr_thread.join()
        self._proc = None
        if returncode != 0:
            raise RuntimeError(f"FFmpeg failed: {self._stderr.decode(errors='replace')}")

    def abort(self) -> None:
        _terminate(self._proc)
        if self._proc is not None and self._proc.stdin is not None:
            self._proc.stdin.close()
        self._proc = None
