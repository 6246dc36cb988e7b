import asyncio
import math
import os
import time
from typing import List, Optional

from loguru import logger

from render_worker.errors import EncodeFailure, ProbeFailure

# ffmpeg stderr can be megabytes; keep the tail where the error usually is
STDERR_TAIL_CHARS = 4000


class MediaUtils:
    """
    Async wrapper around the ffprobe/ffmpeg binaries. Everything the render
    flow needs from them goes through `probe_duration` and `encode`.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        probe_timeout: Optional[float] = 30.0,
        encode_timeout: Optional[float] = 1800.0,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.probe_timeout = probe_timeout
        self.encode_timeout = encode_timeout

    async def _run(self, cmd: List[str], timeout: Optional[float]) -> tuple[int, bytes, bytes]:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            # child is killed on timeout or cancellation
            process.kill()
            await process.wait()
            raise
        return process.returncode, stdout, stderr

    async def probe_duration(self, audio_path: str) -> float:
        """Duration of `audio_path` in seconds, as reported by ffprobe."""
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=nokey=1:noprint_wrappers=1",
            audio_path,
        ]
        context_logger = logger.bind(audio_path=audio_path)
        context_logger.debug("probing audio duration")

        try:
            returncode, stdout, stderr = await self._run(cmd, self.probe_timeout)
        except asyncio.TimeoutError:
            context_logger.bind(timeout=self.probe_timeout).error("ffprobe timed out")
            raise ProbeFailure("ffprobe timed out", details=f"no result after {self.probe_timeout}s")
        except OSError as e:
            context_logger.bind(error=str(e)).error("could not start ffprobe")
            raise ProbeFailure("could not start ffprobe", details=str(e))

        if returncode != 0:
            error = stderr.decode("utf-8", errors="replace").strip()
            context_logger.bind(returncode=returncode, stderr=error).error("ffprobe failed")
            raise ProbeFailure("ffprobe failed", details=error or None)

        raw = stdout.decode("utf-8", errors="replace").strip()
        try:
            duration = float(raw)
        except ValueError:
            context_logger.bind(output=raw).error("unparsable ffprobe output")
            raise ProbeFailure("Could not read audio duration", details=raw or None)
        if not math.isfinite(duration) or duration < 0:
            raise ProbeFailure("Could not read audio duration", details=raw)

        context_logger.bind(duration=duration).info("audio duration probed")
        return duration

    async def encode(self, cmd: List[str], output_path: str) -> str:
        """Run an ffmpeg command; return `output_path` once it exists on disk."""
        start = time.time()
        context_logger = logger.bind(output_path=output_path)
        context_logger.bind(command=" ".join(cmd)).debug("executing ffmpeg command")

        try:
            returncode, _, stderr = await self._run(cmd, self.encode_timeout)
        except asyncio.TimeoutError:
            context_logger.bind(timeout=self.encode_timeout).error("ffmpeg timed out")
            raise EncodeFailure("ffmpeg timed out", details=f"killed after {self.encode_timeout}s")
        except OSError as e:
            context_logger.bind(error=str(e)).error("could not start ffmpeg")
            raise EncodeFailure("could not start ffmpeg", details=str(e))

        # ffmpeg reports progress and errors on stderr
        diagnostics = stderr.decode("utf-8", errors="replace")
        if returncode != 0:
            context_logger.bind(returncode=returncode, stderr=diagnostics[-STDERR_TAIL_CHARS:]).error(
                "ffmpeg failed"
            )
            raise EncodeFailure("ffmpeg failed", details=diagnostics[-STDERR_TAIL_CHARS:])

        if not os.path.exists(output_path):
            raise EncodeFailure("ffmpeg produced no output", details=diagnostics[-STDERR_TAIL_CHARS:])

        context_logger.bind(execution_time=time.time() - start).info("video built successfully")
        context_logger.bind(ffmpeg_output=diagnostics[-STDERR_TAIL_CHARS:]).trace("ffmpeg output")
        return output_path
