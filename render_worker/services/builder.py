from typing import Optional

from render_worker.models import Orientation

VIDEO_CODEC_ARGS = [
    "-c:v", "libx264",
    "-preset", "fast",
    "-profile:v", "high",
    "-level", "4.2",
    "-pix_fmt", "yuv420p",
]
AUDIO_CODEC_ARGS = ["-c:a", "aac", "-b:a", "192k"]


def scale_crop_filter(orientation: Orientation) -> str:
    """Fill the target frame, then crop the overflow."""
    w, h = Orientation(orientation).dimensions
    return f"scale={w}:{h}:force_original_aspect_ratio=increase,crop={w}:{h}"


class RenderCommandBuilder:
    """
    Builder for the ffmpeg command that turns a concat manifest of stills plus
    narration (and optional background music) into one mp4.
    Building is pure: nothing is probed or executed here.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

        # Inputs
        self.manifest_path = None
        self.narration_file = None
        self.background_file = None
        self.output_path = "video.mp4"

        # Video
        self.orientation = Orientation.landscape
        self.motion = None

        # Mix
        self.narration_volume = 1.0
        self.background_volume = 0.3

    def set_manifest(self, file_path: str):
        self.manifest_path = file_path
        return self

    def set_narration(self, file_path: str):
        self.narration_file = file_path
        return self

    def set_background(self, file_path: Optional[str], volume: Optional[float] = None):
        """Set background music; it is looped and mixed under the narration."""
        self.background_file = file_path
        if volume is not None:
            self.background_volume = volume
        return self

    def set_narration_volume(self, volume: float):
        self.narration_volume = volume
        return self

    def set_orientation(self, orientation):
        self.orientation = Orientation(orientation)
        return self

    def set_motion_effect(self, image_duration: float, image_count: int, fps: int = 25, fade: float = 0.5):
        """Enable the zoom/fade chain.

        Args:
            image_duration: seconds per image, used for the zoompan frame count
            image_count: number of images, used to place the closing fade-out
            fps: zoompan output frame rate
            fade: fade-in/fade-out length in seconds
        """
        if image_duration <= 0 or image_count < 1:
            raise ValueError("Motion effect needs a positive image_duration and image_count.")
        self.motion = {
            "image_duration": image_duration,
            "image_count": image_count,
            "fps": fps,
            "fade": fade,
        }
        return self

    def set_output_path(self, output_path: str):
        self.output_path = output_path
        return self

    def _build_video_filter(self) -> str:
        chain = scale_crop_filter(self.orientation)
        if not self.motion:
            return chain

        w, h = self.orientation.dimensions
        fps = self.motion["fps"]
        duration = self.motion["image_duration"]
        frames = max(1, int(round(duration * fps)))
        chain += (
            f",zoompan=z='min(zoom+0.0015,1.5)':x=iw/2-(iw/zoom/2):y=ih/2-(ih/zoom/2)"
            f":d={frames}:s={w}x{h}:fps={fps}"
        )

        fade = self.motion["fade"]
        if fade > 0:
            total = duration * self.motion["image_count"]
            fade_out_start = max(0.0, total - fade)
            chain += f",fade=t=in:st=0:d={fade},fade=t=out:st={fade_out_start:.3f}:d={fade}"
        return chain

    def _build_audio_mix(self) -> str:
        return (
            f"[1:a]volume={self.narration_volume}[a1];"
            f"[2:a]volume={self.background_volume}[a2];"
            f"[a1][a2]amix=inputs=2:normalize=0:duration=first:dropout_transition=0[a]"
        )

    def build_command(self) -> list[str]:
        """Build the complete FFmpeg command."""
        if not self.manifest_path:
            raise ValueError("Manifest must be set.")
        if not self.narration_file:
            raise ValueError("Narration audio must be set.")

        cmd = [
            self.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-f", "concat", "-safe", "0",
            "-i", self.manifest_path,
            "-i", self.narration_file,
        ]

        video_filter = self._build_video_filter()

        if self.background_file:
            cmd.extend(["-stream_loop", "-1", "-i", self.background_file])
            filter_complex = f"[0:v]{video_filter}[v];" + self._build_audio_mix()
            cmd.extend(["-filter_complex", filter_complex, "-map", "[v]", "-map", "[a]"])
        else:
            cmd.extend(["-map", "0:v:0", "-map", "1:a:0", "-vf", video_filter])

        # Codecs
        cmd.extend(VIDEO_CODEC_ARGS)
        cmd.extend(AUDIO_CODEC_ARGS)

        # Duration
        cmd.append("-shortest")

        # Output
        cmd.append(self.output_path)
        return cmd


def build_render_command(
    manifest_path: str,
    narration_path: str,
    background_path: Optional[str],
    orientation,
    output_path: str,
    *,
    ffmpeg_path: str = "ffmpeg",
    narration_volume: float = 1.0,
    background_volume: float = 0.3,
    motion: Optional[dict] = None,
) -> list[str]:
    """One-call wrapper around RenderCommandBuilder.

    `motion` holds the keyword arguments of `set_motion_effect`, or None to keep
    the plain scale/crop chain.
    """
    builder = (
        RenderCommandBuilder(ffmpeg_path=ffmpeg_path)
        .set_manifest(manifest_path)
        .set_narration(narration_path)
        .set_narration_volume(narration_volume)
        .set_background(background_path, volume=background_volume)
        .set_orientation(orientation)
        .set_output_path(output_path)
    )
    if motion:
        builder.set_motion_effect(**motion)
    return builder.build_command()
