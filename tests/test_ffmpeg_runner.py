import asyncio
import logging
import subprocess

import pytest

from brandmotion.utils.ffmpeg_runner import run_ffmpeg_async, stream_ffmpeg_async


def test_run_ffmpeg_async_raises_on_nonzero_exit():
    with pytest.raises(subprocess.CalledProcessError) as excinfo:
        asyncio.run(
            run_ffmpeg_async(["bash", "-c", "echo boom >&2; exit 3"], error_log_level=logging.DEBUG)
        )
    assert excinfo.value.returncode == 3
    assert "boom" in excinfo.value.stderr


def test_run_ffmpeg_async_collects_stdout(tmp_path):
    result = asyncio.run(run_ffmpeg_async(["bash", "-c", "pwd"], cwd=tmp_path))
    assert result.returncode == 0
    assert result.stdout.strip() == str(tmp_path)


def test_stream_ffmpeg_async_delivers_lines_and_returns_code():
    out, err, spawned = [], [], []
    rc = asyncio.run(
        stream_ffmpeg_async(
            ["bash", "-c", "echo progress=continue; echo warn >&2; echo; echo progress=end; exit 2"],
            on_stdout_line=out.append,
            on_stderr_line=err.append,
            on_spawn=spawned.append,
        )
    )
    assert rc == 2
    assert out == ["progress=continue", "progress=end"]
    assert err == ["warn"]
    assert len(spawned) == 1


def test_stream_ffmpeg_async_timeout():
    with pytest.raises(subprocess.TimeoutExpired):
        asyncio.run(stream_ffmpeg_async(["bash", "-c", "exec sleep 5"], timeout=0.3))


def test_missing_executable_raises_file_not_found():
    with pytest.raises(FileNotFoundError):
        asyncio.run(stream_ffmpeg_async(["/nonexistent/ffmpeg", "-version"]))
