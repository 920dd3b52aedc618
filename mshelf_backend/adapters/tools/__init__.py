"""External media tool adapters."""
from .ffmpeg import FFmpegFrames
from .ffprobe import FFProbe
from .handbrake import HandBrakeTranscoder

__all__ = ["FFProbe", "FFmpegFrames", "HandBrakeTranscoder"]
