# tests/conftest.py
import io
import wave

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from render_worker.config import Settings
from render_worker.errors import EncodeFailure, ProbeFailure
from render_worker.main import create_app
from render_worker.services.auth import hash_api_key


class _FakeMediaUtils:
    """Stands in for MediaUtils: no ffprobe/ffmpeg, records what it was asked to do."""

    def __init__(self, duration=10.0):
        self.duration = duration
        self.probe_error: ProbeFailure | None = None
        self.encode_error: EncodeFailure | None = None
        # report success without writing the file, as a broken disk would
        self.skip_output = False
        self.probed = []
        self.commands = []
        self.manifests = []

    async def probe_duration(self, audio_path):
        self.probed.append(audio_path)
        if self.probe_error:
            raise self.probe_error
        return self.duration

    async def encode(self, cmd, output_path):
        self.commands.append(cmd)
        # the manifest is the first -i input; keep its text before cleanup removes it
        manifest = cmd[cmd.index("-i") + 1]
        with open(manifest, encoding="utf-8") as f:
            self.manifests.append(f.read())
        if self.encode_error:
            raise self.encode_error
        if self.skip_output:
            return output_path
        with open(output_path, "wb") as f:
            f.write(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64)
        return output_path


@pytest.fixture()
def jobs_dir(tmp_path):
    d = tmp_path / "jobs"
    d.mkdir()
    return d


@pytest.fixture()
def settings(jobs_dir):
    return Settings(_env_file=None, api_secret="s3cret", render_tmp_dir=str(jobs_dir))


@pytest.fixture()
def fake_media():
    return _FakeMediaUtils()


@pytest.fixture()
def client(settings, fake_media):
    app = create_app(settings, media=fake_media)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth_headers(settings):
    return {"x-api-key": hash_api_key(settings.api_secret)}


# ---------- small helpers ----------
def _make_png_bytes(w=64, h=64, color=(200, 180, 120)):
    im = Image.new("RGB", (w, h), color)
    buf = io.BytesIO()
    im.save(buf, format="PNG")
    buf.seek(0)
    return buf


def _make_wav_bytes(duration_sec=1.0, sample_rate=16000):
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)   # 16-bit
        wf.setframerate(sample_rate)
        nframes = int(duration_sec * sample_rate)
        wf.writeframes(b"\x00\x00" * nframes)
    buf.seek(0)
    return buf


@pytest.fixture()
def render_files():
    """Build the multipart `files` list for POST /render."""
    def _do(image_count=2, narration_field="narration", background=False):
        files = [(narration_field, ("narration.wav", _make_wav_bytes(), "audio/wav"))]
        if background:
            files.append(("background", ("music.wav", _make_wav_bytes(), "audio/wav")))
        for i in range(image_count):
            files.append(("images", (f"img{i}.png", _make_png_bytes(color=(i * 10, 80, 120)), "image/png")))
        return files
    return _do
