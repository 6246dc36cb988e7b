import os
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from render_worker.config import Settings
from render_worker.errors import CleanupError, ValidationError
from render_worker.models import Orientation
from render_worker.services.builder import build_render_command
from render_worker.services.manifest import compute_image_duration, write_concat_manifest
from render_worker.services.media import MediaUtils


def _safe_suffix(filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ext if ext[1:].isalnum() and len(ext) <= 8 else ""


@dataclass
class RenderJob:
    """Temp files owned by one /render request, all inside `workdir`."""

    job_id: str
    workdir: str
    orientation: Orientation = Orientation.landscape
    narration_path: Optional[str] = None
    background_path: Optional[str] = None
    image_paths: List[str] = field(default_factory=list)

    @classmethod
    def create(cls, tmp_root: str, orientation=Orientation.landscape) -> "RenderJob":
        job_id = uuid.uuid4().hex
        workdir = os.path.join(tmp_root, f"render_{job_id}")
        os.makedirs(workdir, exist_ok=False)
        logger.bind(job_id=job_id, workdir=workdir).debug("working directory prepared")
        return cls(job_id=job_id, workdir=workdir, orientation=Orientation(orientation))

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.workdir, "images.txt")

    @property
    def output_path(self) -> str:
        return os.path.join(self.workdir, "video.mp4")

    def narration_target(self, filename: Optional[str]) -> str:
        self.narration_path = os.path.join(self.workdir, f"narration{_safe_suffix(filename)}")
        return self.narration_path

    def background_target(self, filename: Optional[str]) -> str:
        self.background_path = os.path.join(self.workdir, f"background{_safe_suffix(filename)}")
        return self.background_path

    def image_target(self, filename: Optional[str]) -> str:
        path = os.path.join(self.workdir, f"image_{len(self.image_paths):03d}{_safe_suffix(filename)}")
        self.image_paths.append(path)
        return path

    def paths(self) -> List[str]:
        candidates = [self.output_path, self.manifest_path, self.narration_path, self.background_path]
        candidates.extend(self.image_paths)
        return [p for p in candidates if p]

    @staticmethod
    def _remove(path: str, remover=os.remove) -> None:
        try:
            remover(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CleanupError(details=f"{path}: {e}") from e

    def cleanup(self) -> bool:
        """Best-effort delete of every job file; failures are logged, never raised.

        Returns True when the whole working directory is gone.
        """
        context_logger = logger.bind(job_id=self.job_id)
        clean = True
        for path in self.paths() + [self.workdir]:
            remover = os.rmdir if path == self.workdir else os.remove
            try:
                self._remove(path, remover)
            except CleanupError as err:
                clean = False
                context_logger.bind(path=path, details=err.details).warning(err.message)

        if clean:
            context_logger.debug("temporary files removed")
        return clean


class RenderOrchestrator:
    """
    Probe the narration, split its length across the images, write the concat
    manifest and run ffmpeg. Returns the path of the rendered mp4.
    """

    def __init__(self, settings: Settings, media: MediaUtils):
        self.settings = settings
        self.media = media

    def _motion_config(self, image_duration: float, image_count: int) -> Optional[dict]:
        if not self.settings.render_motion_effect:
            return None
        return {
            "image_duration": image_duration,
            "image_count": image_count,
            "fps": self.settings.render_fps,
            "fade": self.settings.render_fade_s,
        }

    async def render(self, job: RenderJob) -> str:
        if not job.narration_path or not job.image_paths:
            raise ValidationError("narration and images are required")

        context_logger = logger.bind(
            job_id=job.job_id,
            orientation=job.orientation.value,
            image_count=len(job.image_paths),
            has_background=bool(job.background_path),
        )
        context_logger.info("render started")

        total = await self.media.probe_duration(job.narration_path)
        per_image = compute_image_duration(
            total, len(job.image_paths), minimum=self.settings.render_min_image_duration
        )
        context_logger.bind(narration_duration=total, duration_per_image=per_image).debug(
            "image duration computed"
        )

        write_concat_manifest(job.image_paths, per_image, job.manifest_path)

        cmd = build_render_command(
            job.manifest_path,
            job.narration_path,
            job.background_path,
            job.orientation,
            job.output_path,
            ffmpeg_path=self.settings.ffmpeg_path,
            narration_volume=self.settings.render_narration_volume,
            background_volume=self.settings.render_background_volume,
            motion=self._motion_config(per_image, len(job.image_paths)),
        )

        output = await self.media.encode(cmd, job.output_path)
        context_logger.bind(output_path=output).info("render finished")
        return output
