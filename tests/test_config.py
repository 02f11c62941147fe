import pytest

from brandmotion.components.config import (
    DEFAULT_CONFIG,
    load_config,
    merge_configs,
    resolve_config,
    validate_config,
)
from brandmotion.exceptions import ValidationError


def test_defaults_are_valid():
    validate_config(DEFAULT_CONFIG)
    assert DEFAULT_CONFIG["name_card"]["reveal_after"] == 1.0
    assert DEFAULT_CONFIG["output"]["container"] == "mp4"


def test_load_config_reads_yaml(tmp_path):
    path = tmp_path / "brand.yaml"
    path.write_text("name_card:\n  text_color: '#FFD700'\nencoding:\n  crf: 18\n", encoding="utf-8")
    assert load_config(str(path)) == {"name_card": {"text_color": "#FFD700"}, "encoding": {"crf": 18}}


def test_empty_file_is_empty_config(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == {}


def test_invalid_yaml_reports_position(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("engine:\n  ffmpeg_path: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValidationError) as excinfo:
        load_config(str(path))
    assert excinfo.value.line_number is not None
    assert "Line:" in str(excinfo.value)


def test_missing_file_and_non_mapping_root(tmp_path):
    with pytest.raises(ValidationError, match="not found"):
        load_config(str(tmp_path / "nope.yaml"))
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValidationError, match="mapping"):
        load_config(str(path))


def test_merge_is_deep_and_does_not_mutate():
    base = {"encoding": {"crf": 20, "preset": "veryfast"}, "output": {"container": "mp4"}}
    merged = merge_configs(base, {"encoding": {"crf": 18}})
    assert merged == {"encoding": {"crf": 18, "preset": "veryfast"}, "output": {"container": "mp4"}}
    assert base["encoding"]["crf"] == 20
    merged["output"]["container"] = "mov"
    assert base["output"]["container"] == "mp4"


def test_resolve_config_layers_file_then_overrides(tmp_path):
    path = tmp_path / "brand.yaml"
    path.write_text("encoding:\n  crf: 18\n  preset: slow\n", encoding="utf-8")
    config = resolve_config(str(path), {"encoding": {"preset": "fast"}})
    assert config["encoding"]["crf"] == 18
    assert config["encoding"]["preset"] == "fast"
    assert config["engine"]["min_ffmpeg_version"] == "4.0"


@pytest.mark.parametrize(
    "override",
    [
        {"name_card": {"text_color": "#12"}},
        {"name_card": {"reveal_after": -1}},
        {"name_card": {"reveal_after": "soon"}},
        {"engine": {"stage_timeout_sec": 0}},
        {"engine": {"ffmpeg_path": ""}},
        {"encoding": {"crf": 64}},
        {"encoding": {"crf": True}},
        {"encoding": {"video_codec": "copy"}},
        {"output": {"container": "avi"}},
        {"output": {"mime_type": "mp4"}},
        {"engine": ["not", "a", "mapping"]},
    ],
)
def test_invalid_values_are_rejected(override):
    with pytest.raises(ValidationError):
        resolve_config(overrides=override)


def test_webm_requires_a_webm_video_codec():
    with pytest.raises(ValidationError, match="webm"):
        resolve_config(overrides={"output": {"container": "webm"}})
    config = resolve_config(
        overrides={"output": {"container": "webm"}, "encoding": {"video_codec": "libvpx-vp9"}}
    )
    assert config["encoding"]["video_codec"] == "libvpx-vp9"
