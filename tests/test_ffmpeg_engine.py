import asyncio
import logging
import stat
import subprocess
import sys

import pytest

from brandmotion.components.branding.filtergraph import StageCommand
from brandmotion.engine import LOG_EVENT, PROGRESS_EVENT, FFmpegEngine, ProgressParser
from brandmotion.exceptions import AcquisitionError, ArtifactError, StageExecutionError
from brandmotion.utils import media_duration
from brandmotion.utils.media_duration import parse_duration

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")

FAKE_FFPROBE = """#!/bin/sh
if [ "$1" = "-version" ]; then echo "ffprobe version 6.1.1 Copyright"; exit 0; fi
echo '{"format": {"duration": "4.0"}}'
"""


def _fake_ffmpeg(body: str, version: str = "6.1.1") -> str:
    return f"""#!/bin/sh
if [ "$1" = "-version" ]; then echo "ffmpeg version {version} Copyright"; exit 0; fi
{body}
"""


RENDERING_BODY = """echo "out_time_us=1000000"
echo "out_time_us=2000000"
echo "progress=end"
echo "frame=  25 fps=0.0 q=-1.0 size=N/A" >&2
for last; do :; done
printf 'encoded' > "$last"
"""


def _script(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


def _engine(tmp_path, ffmpeg_body=RENDERING_BODY, version="6.1.1", **kwargs):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)
    return FFmpegEngine(
        ffmpeg_path=_script(bin_dir, "ffmpeg", _fake_ffmpeg(ffmpeg_body, version)),
        ffprobe_path=_script(bin_dir, "ffprobe", FAKE_FFPROBE),
        work_dir_parent=str(tmp_path),
        **kwargs,
    )


OVERLAY = StageCommand(
    stage="overlay_logo",
    args=("-y", "-i", "input.mp4", "-i", "scaled_logo.png", "video_with_logo.mp4"),
    output="video_with_logo.mp4",
    primary_input="input.mp4",
)


def test_progress_parser_uses_duration():
    parser = ProgressParser(4.0)
    assert parser.feed("frame=10") is None
    assert parser.feed("out_time_us=1000000") == 0.25
    assert parser.feed("out_time_ms=3000000") == 0.75
    assert parser.feed("out_time_us=9000000") == 1.0
    assert parser.feed("out_time_us=N/A") is None
    assert parser.feed("progress=continue") is None
    assert parser.feed("progress=end") == 1.0


def test_progress_parser_without_duration_reports_only_end():
    parser = ProgressParser(None)
    assert parser.feed("out_time_us=1000000") is None
    assert parser.feed("progress=end") == 1.0


def test_artifact_storage_roundtrip(tmp_path):
    async def scenario():
        engine = FFmpegEngine()
        engine.work_dir = tmp_path
        await engine.write_artifact("logo.png", b"png")
        assert await engine.has_artifact("logo.png")
        assert await engine.read_artifact("logo.png") == b"png"
        await engine.write_artifact("empty.mp4", b"")
        assert not await engine.has_artifact("empty.mp4")
        await engine.delete_artifact("logo.png")
        await engine.delete_artifact("logo.png")
        assert not await engine.has_artifact("logo.png")
        with pytest.raises(ArtifactError):
            await engine.read_artifact("logo.png")
        with pytest.raises(ValueError):
            await engine.write_artifact("../escape.png", b"x")

    asyncio.run(scenario())


def test_load_execute_terminate(tmp_path):
    async def scenario():
        engine = _engine(tmp_path)
        logs, ratios = [], []
        engine.on(LOG_EVENT, logs.append)
        engine.on(PROGRESS_EVENT, ratios.append)
        await engine.load()
        work_dir = engine.work_dir
        assert engine.loaded and work_dir.is_dir()
        await engine.write_artifact("input.mp4", b"video")
        await engine.write_artifact("scaled_logo.png", b"logo")
        rc = await engine.execute(OVERLAY)
        assert rc == 0
        assert await engine.read_artifact("video_with_logo.mp4") == b"encoded"
        await engine.terminate()
        await engine.terminate()
        return logs, ratios, work_dir, engine

    logs, ratios, work_dir, engine = asyncio.run(scenario())
    assert logs[0] == "ffmpeg 6.1.1 ready"
    assert any(line.startswith("frame=") for line in logs)
    assert ratios == [0.25, 0.5, 1.0]
    assert not work_dir.exists()
    assert not engine.loaded


def test_failing_stage_returns_code_and_logs(tmp_path):
    async def scenario():
        engine = _engine(tmp_path, 'echo "Invalid filter expression" >&2\nexit 1')
        logs = []
        engine.on(LOG_EVENT, logs.append)
        await engine.load()
        try:
            rc = await engine.execute(OVERLAY)
        finally:
            await engine.terminate()
        return rc, logs

    rc, logs = asyncio.run(scenario())
    assert rc == 1
    assert logs[-1] == "Invalid filter expression"


def test_stage_timeout_raises(tmp_path):
    async def scenario():
        engine = _engine(tmp_path, "exec sleep 5", stage_timeout=0.5)
        await engine.load()
        try:
            await engine.execute(OVERLAY)
        finally:
            await engine.terminate()

    with pytest.raises(StageExecutionError, match="timed out"):
        asyncio.run(scenario())


def test_load_rejects_old_ffmpeg(tmp_path):
    engine = _engine(tmp_path, version="3.4.8")
    with pytest.raises(AcquisitionError, match="older"):
        asyncio.run(engine.load())
    assert not engine.loaded


def test_load_fails_without_binary(tmp_path):
    engine = FFmpegEngine(ffmpeg_path=str(tmp_path / "missing-ffmpeg"))
    with pytest.raises(AcquisitionError):
        asyncio.run(engine.load())


def test_from_config_reads_engine_section():
    engine = FFmpegEngine.from_config(
        {"engine": {"ffmpeg_path": "/opt/ffmpeg", "stage_timeout_sec": 30}}
    )
    assert engine.ffmpeg_path == "/opt/ffmpeg"
    assert engine.ffprobe_path == "ffprobe"
    assert engine.stage_timeout == 30


def test_parse_duration():
    assert parse_duration('{"format": {"duration": "12.3456"}}') == 12.346
    assert parse_duration('{"format": {"duration": "N/A"}}') is None
    assert parse_duration("") is None


def test_failed_duration_lookup_is_logged_quietly(tmp_path, monkeypatch):
    calls, levels = [], []

    async def failing_run(args, **kwargs):
        calls.append(kwargs)
        raise subprocess.CalledProcessError(1, args, output="", stderr="moov atom not found")

    monkeypatch.setattr(media_duration, "run_ffmpeg_async", failing_run)
    monkeypatch.setattr(media_duration.logger, "log", lambda level, *a, **k: levels.append(level))

    engine = FFmpegEngine()
    engine.work_dir = tmp_path
    assert asyncio.run(engine._duration_of("input.webm")) is None
    assert calls[0]["error_log_level"] == logging.DEBUG
    assert levels and all(level < logging.ERROR for level in levels)
