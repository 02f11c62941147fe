import asyncio

import pytest

from brandmotion.exceptions import (
    AcquisitionError,
    ArtifactError,
    PipelineError,
    RenderError,
    StageExecutionError,
)
from brandmotion.job import BrandingJob, JobStatus, ProgressForwarder
from fakes import BlockingEngine, ReplayEngine


def _run(job):
    return asyncio.run(job.run())


def test_successful_job_produces_handle_and_cleans_up(make_request):
    engine = ReplayEngine()
    job = BrandingJob(make_request(), engine_factory=lambda: engine)
    handle = _run(job)
    try:
        assert handle.data == b"rendered:overlay_name_card"
        assert handle.mime_type == "video/mp4"
        assert job.state.status is JobStatus.COMPLETE
        assert job.state.result_handle is handle
        assert job.state.progress_ratio == 1.0
        assert engine.writes == ["input.mp4", "logo.png", "name_card.png"]
        assert [c.stage for c in engine.executed] == [
            "scale_logo",
            "overlay_logo",
            "overlay_name_card",
        ]
        assert engine.load_calls == 1
        assert engine.terminate_calls == 1
        assert "final.mp4" in engine.deleted
    finally:
        handle.release()


def test_log_lines_follow_job_phases(make_request):
    engine = ReplayEngine()
    seen = []
    job = BrandingJob(make_request(), engine_factory=lambda: engine, on_log=seen.append)
    _run(job).release()

    lines = job.state.log_lines
    assert seen == lines
    assert lines[0] == "Creating name card..."
    assert "Loading FFmpeg..." in lines
    assert "FFmpeg loaded." in lines
    assert "Scaling logo to 80x80" in lines
    assert lines[-1] == "Video branding complete!"
    engine_lines = [line for line in lines if line.endswith("engine ready")]
    assert len(engine_lines) == 1
    assert engine_lines[0].startswith("[") and engine_lines[0][9] == "]"


def test_status_is_executing_while_progress_flows(make_request):
    statuses = []
    holder = {}

    def on_progress(_percent):
        statuses.append(holder["job"].state.status)

    job = BrandingJob(make_request(), engine_factory=ReplayEngine, on_progress=on_progress)
    holder["job"] = job
    _run(job).release()
    assert statuses and set(statuses) == {JobStatus.EXECUTING}


def test_progress_is_integer_percent_per_stage(make_request):
    engine = ReplayEngine(
        progress_ticks={
            "scale_logo": (0.0, 0.3, 0.77, 1.0),
            "overlay_logo": (0.5, 0.4, 0.6, 1.0),
        }
    )
    progress = []
    job = BrandingJob(make_request(), engine_factory=lambda: engine, on_progress=progress.append)
    _run(job).release()
    assert progress == [0, 30, 77, 100, 50, 60, 100, 0, 100]
    assert all(isinstance(p, int) for p in progress)


def test_progress_forwarder_ignores_garbage_and_clamps():
    seen = []
    forwarder = ProgressForwarder(seen.append)
    for value in (float("nan"), "x", -0.5, 0.25, 1.7):
        forwarder.forward(value)
    assert seen == [0, 25, 100]
    forwarder.begin_stage()
    forwarder.forward(0.1)
    assert seen[-1] == 10


def test_missing_stage_output_stops_the_job(make_request):
    engine = ReplayEngine(drop_outputs={"scaled_logo.png"})
    job = BrandingJob(make_request(), engine_factory=lambda: engine)
    with pytest.raises(ArtifactError, match="scaled_logo") as excinfo:
        _run(job)
    assert excinfo.value.artifact == "scaled_logo.png"
    assert [c.stage for c in engine.executed] == ["scale_logo"]
    assert engine.terminate_calls == 1
    assert job.state.status is JobStatus.FAILED
    assert job.state.result_handle is None
    assert job.state.log_lines[-1].startswith("Error: ")


def test_failing_stage_reports_last_engine_line(make_request):
    engine = ReplayEngine(fail_stage="overlay_logo")
    job = BrandingJob(make_request(), engine_factory=lambda: engine)
    with pytest.raises(StageExecutionError) as excinfo:
        _run(job)
    assert excinfo.value.stage == "overlay_logo"
    assert excinfo.value.returncode == 1
    assert "Invalid filter expression" in str(excinfo.value)
    assert any(line.endswith("Invalid filter expression") for line in job.state.log_lines)
    assert len(engine.executed) == 2
    assert engine.terminate_calls == 1


def test_engine_load_failure_is_acquisition_error(make_request):
    engine = ReplayEngine(fail_load=True)
    job = BrandingJob(make_request(), engine_factory=lambda: engine)
    with pytest.raises(AcquisitionError):
        _run(job)
    assert engine.executed == []
    assert engine.writes == []
    assert engine.terminate_calls == 1
    assert job.state.status is JobStatus.FAILED


def test_engine_factory_crash_is_acquisition_error(make_request):
    def factory():
        raise FileNotFoundError("ffmpeg")

    job = BrandingJob(make_request(), engine_factory=factory)
    with pytest.raises(AcquisitionError):
        _run(job)


def test_render_failure_happens_before_engine_is_created(make_request, monkeypatch):
    created = []

    def factory():
        created.append(True)
        return ReplayEngine()

    def broken(_spec):
        raise RenderError("font missing")

    monkeypatch.setattr("brandmotion.job.rasterize_name_card", broken)
    job = BrandingJob(make_request(), engine_factory=factory)
    with pytest.raises(RenderError):
        _run(job)
    assert created == []
    assert job.state.status is JobStatus.FAILED


def test_raising_callbacks_do_not_break_the_job(make_request):
    def explode(_value):
        raise RuntimeError("ui went away")

    job = BrandingJob(
        make_request(), engine_factory=ReplayEngine, on_progress=explode, on_log=explode
    )
    handle = _run(job)
    assert job.state.status is JobStatus.COMPLETE
    handle.release()


def test_unknown_style_values_fall_back_with_a_warning(make_request):
    engine = ReplayEngine()
    job = BrandingJob(
        make_request(logo_position="center", logo_size="huge"), engine_factory=lambda: engine
    )
    _run(job).release()
    assert any("Unknown logo position 'center'" in line for line in job.state.log_lines)
    assert any("Unknown logo size 'huge'" in line for line in job.state.log_lines)
    assert "Scaling logo to 160x160" in job.state.log_lines
    logo_args = engine.executed[1].args
    graph = logo_args[logo_args.index("-filter_complex") + 1]
    assert "x=main_w-overlay_w-10:y=10" in graph


def test_name_card_reveal_delay_comes_from_config(make_request):
    engine = ReplayEngine()
    job = BrandingJob(
        make_request(), engine_factory=lambda: engine, config={"name_card": {"reveal_after": 0}}
    )
    _run(job).release()
    card_args = engine.executed[2].args
    graph = card_args[card_args.index("-filter_complex") + 1]
    assert "enable" not in graph


def test_job_runs_only_once(make_request):
    job = BrandingJob(make_request(), engine_factory=ReplayEngine)
    _run(job).release()
    with pytest.raises(PipelineError):
        _run(job)


def test_cancel_stops_callbacks_and_terminates_engine(make_request):
    progress = []

    async def scenario():
        engine = BlockingEngine()
        job = BrandingJob(make_request(), engine_factory=lambda: engine, on_progress=progress.append)
        task = asyncio.ensure_future(job.run())
        await engine.started.wait()
        job.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return job, engine

    job, engine = asyncio.run(scenario())
    assert job.cancelled
    assert progress == [10]
    assert job.state.status is JobStatus.FAILED
    assert job.state.log_lines[-1] == "Error: Job cancelled."
    assert engine.terminate_calls == 1


def test_stage_callback_marks_boundaries_for_completion_only_stages(make_request):
    engine = ReplayEngine(
        progress_ticks={
            "scale_logo": (1.0,),
            "overlay_logo": (1.0,),
            "overlay_name_card": (1.0,),
        }
    )
    events = []
    job = BrandingJob(
        make_request(),
        engine_factory=lambda: engine,
        on_progress=lambda percent: events.append(("progress", percent)),
        on_stage=lambda idx, name: events.append(("stage", idx, name)),
    )
    _run(job).release()
    assert events == [
        ("stage", 0, "scale_logo"),
        ("progress", 100),
        ("stage", 1, "overlay_logo"),
        ("progress", 100),
        ("stage", 2, "overlay_name_card"),
        ("progress", 100),
    ]
