import pytest

from brandmotion.utils.dependency_checks import VersionRequirement, parse_tool_version


@pytest.mark.parametrize(
    "output, expected",
    [
        ("ffmpeg version 6.1.1-3ubuntu5 Copyright (c) 2000-2023", "6.1.1-3ubuntu5"),
        ("ffmpeg version n7.0 Copyright", "n7.0"),
        ("ffprobe version 4.4.2 Copyright", None),
        ("", None),
    ],
)
def test_parse_tool_version(output, expected):
    assert parse_tool_version(output, "ffmpeg") == expected


def test_version_requirement_parsing_and_comparison():
    minimum = VersionRequirement.parse("4.0")
    assert VersionRequirement.parse("6.1.1-3ubuntu5") == VersionRequirement(6, 1, 1)
    assert VersionRequirement.parse("n7.0").satisfies(minimum)
    assert not VersionRequirement.parse("3.4.8").satisfies(minimum)
    assert VersionRequirement.parse("4").satisfies(minimum)


def test_version_requirement_rejects_text_without_digits():
    with pytest.raises(ValueError):
        VersionRequirement.parse("unknown")
