from __future__ import annotations

from pathlib import Path

import pytest

from nuclio_builder.types import BuildOptions
from nuclio_builder.workspace.env import get_output_name


@pytest.mark.parametrize(
    "output_type, name, version, expected",
    [
        ("docker", "", "latest", "nuclio_processor_hello:latest"),
        ("docker", "", "1.0", "nuclio_processor_hello:1.0"),
        ("docker", "myimage", "latest", "myimage:latest"),
        ("docker", "myimage:pinned", "1.0", "myimage:pinned"),
        ("binary", "mybin", "2", "mybin_2"),
    ],
)
def test_output_name(output_type: str, name: str, version: str, expected: str) -> None:
    options = BuildOptions(function_path=".", output_type=output_type, output_name=name, version=version)
    assert get_output_name(options, "hello") == expected


def test_default_binary_name_is_under_cwd(tmp_path: Path) -> None:
    options = BuildOptions(function_path=".", output_type="binary")
    assert get_output_name(options, "hello", cwd=tmp_path) == str(tmp_path / "nuclio_processor_hello_latest")
