from typing import List, Optional

import aiofiles
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from loguru import logger
from starlette.datastructures import FormData, UploadFile

from render_worker.errors import StreamError, ValidationError
from render_worker.models import ErrorResponse, Orientation
from render_worker.services.auth import require_api_key
from render_worker.services.render_job import RenderJob

router = APIRouter(tags=["Render"])

CHUNK_SIZE = 1024 * 1024

# ----- Helpers

def _uploads(form: FormData, name: str) -> List[UploadFile]:
    # unset file inputs arrive as parts without a filename
    return [v for v in form.getlist(name) if isinstance(v, UploadFile) and v.filename]

def _single_upload(form: FormData, *names: str) -> Optional[UploadFile]:
    """First upload found under any of `names`; more than one is a client error."""
    for name in names:
        files = _uploads(form, name)
        if len(files) > 1:
            raise ValidationError(f"only one {name} file is allowed")
        if files:
            return files[0]
    return None

def _parse_orientation(value) -> Orientation:
    if not isinstance(value, str) or not value.strip():
        return Orientation.landscape
    try:
        return Orientation(value.strip().lower())
    except ValueError:
        raise ValidationError("orientation must be 'landscape' or 'portrait'", details=value)

async def _save_upload(upload: UploadFile, dest: str) -> None:
    async with aiofiles.open(dest, "wb") as f:
        while chunk := await upload.read(CHUNK_SIZE):
            await f.write(chunk)

async def _open_output(path: str):
    try:
        return await aiofiles.open(path, "rb")
    except OSError as e:
        logger.bind(output_path=path, error=str(e)).error("failed to open output file")
        raise StreamError(details=str(e))

async def _stream_output(handle, job: RenderJob):
    """Yield the rendered file, then delete the job however streaming ended."""
    try:
        while chunk := await handle.read(CHUNK_SIZE):
            yield chunk
    except OSError as e:
        # headers are already out; the connection is dropped
        logger.bind(job_id=job.job_id, error=str(e)).error("failed to read output file")
        raise StreamError(details=str(e))
    finally:
        await handle.close()
        logger.bind(job_id=job.job_id).debug("cleaning up temporary files")
        job.cleanup()

class VideoFileResponse(StreamingResponse):
    """
    Streams a finished job's mp4. The job is cleaned up when the response ends,
    including when the client disconnects before the body is fully sent.
    """

    def __init__(self, handle, job: RenderJob):
        self.handle = handle
        self.job = job
        super().__init__(
            _stream_output(handle, job),
            media_type="video/mp4",
            headers={"Content-Disposition": 'attachment; filename="video.mp4"'},
        )

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # a disconnect leaves the generator suspended or never started
            await self.body_iterator.aclose()
            await self.handle.close()
            self.job.cleanup()

# ----- Endpoints

@router.post(
    "/render",
    dependencies=[Depends(require_api_key)],
    responses={
        200: {"content": {"video/mp4": {}}, "description": "Rendered video"},
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def render(request: Request):
    """
    Multipart fields: orientation (landscape|portrait), narration (or audio),
    background (optional), images (1..RENDER_MAX_IMAGES).
    """
    settings = request.app.state.settings
    form = await request.form()
    try:
        orientation = _parse_orientation(form.get("orientation"))
        narration = _single_upload(form, "narration", "audio")
        background = _single_upload(form, "background")
        images = _uploads(form, "images")

        if narration is None or not images:
            raise ValidationError("narration and images are required")
        if len(images) > settings.render_max_images:
            raise ValidationError(f"at most {settings.render_max_images} images are allowed")

        logger.bind(
            orientation=orientation.value,
            narration=narration.filename,
            background=background.filename if background else None,
            image_count=len(images),
        ).info("render request accepted")

        job = RenderJob.create(settings.render_tmp_dir, orientation)
        try:
            await _save_upload(narration, job.narration_target(narration.filename))
            if background is not None:
                await _save_upload(background, job.background_target(background.filename))
            for image in images:
                await _save_upload(image, job.image_target(image.filename))

            output = await request.app.state.orchestrator.render(job)
            handle = await _open_output(output)
        except BaseException:
            job.cleanup()
            raise
    finally:
        await form.close()

    return VideoFileResponse(handle, job)
