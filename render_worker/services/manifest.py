import math
import os
from typing import Sequence

from loguru import logger


def _concat_path(p: str) -> str:
    """Forward-slash path quoted for an ffmpeg concat `file` directive."""
    posix = str(p).replace("\\", "/")
    # concat demuxer: a quote inside '...' is written as '\''
    return posix.replace("'", "'\\''")


def compute_image_duration(total_duration: float, image_count: int, minimum: float = 1.0) -> float:
    """Seconds each image stays on screen, never below `minimum`."""
    if image_count < 1:
        raise ValueError("image_count must be at least 1")
    per_image = total_duration / image_count
    if not math.isfinite(per_image) or per_image < minimum:
        return float(minimum)
    return per_image


def build_concat_manifest(images: Sequence[str], duration: float) -> str:
    """
    Text for ffmpeg's concat demuxer: a file/duration pair per image and the
    last image repeated without a duration, otherwise its duration is ignored.
    """
    if not images:
        raise ValueError("At least one image is required")
    if duration <= 0:
        raise ValueError("duration must be positive")

    lines = []
    for img in images:
        lines.append(f"file '{_concat_path(img)}'")
        lines.append(f"duration {duration}")
    lines.append(f"file '{_concat_path(images[-1])}'")
    return "\n".join(lines) + "\n"


def write_concat_manifest(images: Sequence[str], duration: float, manifest_path: str) -> str:
    """Write the manifest to `manifest_path`, replacing any existing file."""
    content = build_concat_manifest(images, duration)
    out_dir = os.path.dirname(os.path.abspath(manifest_path)) or "."
    os.makedirs(out_dir, exist_ok=True)
    with open(manifest_path, "w", encoding="utf-8") as f:
        f.write(content)

    logger.bind(
        manifest_path=manifest_path,
        image_count=len(images),
        duration_per_image=duration,
    ).debug("concat manifest written")
    return content
