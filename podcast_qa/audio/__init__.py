"""Audio probing and segmentation.

segmenter.py : AudioSegmenter and the segment planning arithmetic
ffmpeg.py : async ffprobe/ffmpeg subprocess wrappers
"""

from .ffmpeg import probe_duration, extract_range
from .segmenter import AudioSegment, AudioSegmenter, plan_segments

__all__ = [
    "AudioSegment",
    "AudioSegmenter",
    "plan_segments",
    "probe_duration",
    "extract_range",
]
