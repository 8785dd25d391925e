"""
Tests for version-text parsing and install-location classification
(toolchain_probe/detection.py).
"""

import pytest

from toolchain_probe.detection import (
    InstallKind,
    classify_install_location,
    detect_install_method,
    extract_version_number,
    is_bare_version,
    parse_conda_list,
    parse_pip_show,
    parse_poetry_show,
    pipx_listing,
    structured_version,
)


CORE_MARKERS = ("RapidKit", "Version", "rapidkit-core")


class TestClassifyInstallLocation:
    """Table-driven tests for the best-effort location classifier."""

    @pytest.mark.parametrize("path,expected", [
        ("/home/dev/.local/share/pipx/venvs/rapidkit-core/lib/python3.12/site-packages", InstallKind.GLOBAL),
        ("/home/dev/.local/pipx/venvs/rapidkit-core/bin/python", InstallKind.GLOBAL),
        ("/home/dev/.local/share/uv/tools/rapidkit-core/lib/python3.12/site-packages", InstallKind.GLOBAL),
        ("/home/dev/.pyenv/versions/3.11.4/lib/python3.11/site-packages", InstallKind.GLOBAL),
        ("/opt/miniconda3/lib/python3.11/site-packages", InstallKind.GLOBAL),
        ("/home/dev/anaconda3/envs/tools/lib/python3.10/site-packages", InstallKind.GLOBAL),
        ("/usr/lib/python3/dist-packages", InstallKind.GLOBAL),
        ("/usr/local/lib/python3.12/site-packages", InstallKind.GLOBAL),
        ("/home/dev/.local/lib/python3.12/site-packages", InstallKind.GLOBAL),
        ("/home/dev/.cache/pypoetry/virtualenvs/app-x1y2-py3.12/lib/python3.12/site-packages", InstallKind.PROJECT_LOCAL),
        ("/srv/other/.venv/lib/python3.12/site-packages", InstallKind.PROJECT_LOCAL),
        ("/srv/other/venv/lib/python3.12/site-packages", InstallKind.PROJECT_LOCAL),
        ("/srv/somewhere/else", InstallKind.UNKNOWN),
        ("", InstallKind.UNKNOWN),
        (None, InstallKind.UNKNOWN),
    ])
    def test_layouts(self, path, expected):
        assert classify_install_location(path) is expected

    def test_inside_workspace_is_project_local(self, tmp_path):
        workspace = tmp_path / "app"
        site = workspace / "lib" / "site-packages"
        assert classify_install_location(str(site), str(workspace)) is InstallKind.PROJECT_LOCAL

    def test_workspace_prefix_sibling_is_not_inside(self, tmp_path):
        workspace = tmp_path / "app"
        sibling = tmp_path / "app-other" / "lib"
        assert classify_install_location(str(sibling), str(workspace)) is InstallKind.UNKNOWN

    def test_install_method_names(self):
        assert detect_install_method("/home/dev/.local/share/pipx/venvs/x/bin/x") == "pipx"
        assert detect_install_method("/home/dev/.pyenv/shims/python") == "pyenv"
        assert detect_install_method("") == ""


class TestStructuredVersion:
    """Tests for structured --version output checks."""

    def test_accepts_marked_output(self):
        assert structured_version("RapidKit Version v0.4.2", CORE_MARKERS) == "0.4.2"
        assert structured_version("RapidKit 1.0.0rc1\nPython 3.12.1", CORE_MARKERS) == "1.0.0rc1"

    def test_rejects_bare_numeral(self):
        assert structured_version("0.12.3", CORE_MARKERS) == ""
        assert structured_version("v0.12.3\n", CORE_MARKERS) == ""

    def test_rejects_unmarked_output(self):
        assert structured_version("some-other-tool 2.0.0", CORE_MARKERS) == ""

    def test_marker_without_version(self):
        assert structured_version("RapidKit (development build)", CORE_MARKERS) == ""

    def test_is_bare_version(self):
        assert is_bare_version("1.2.3")
        assert not is_bare_version("RapidKit 1.2.3")
        assert not is_bare_version("")


class TestParsers:
    """Tests for pip, poetry, conda and pipx output parsers."""

    def test_parse_pip_show(self):
        output = (
            "Name: rapidkit-core\n"
            "Version: 0.4.2\n"
            "Summary: RapidKit core\n"
            "Location: /home/dev/.local/lib/python3.12/site-packages\n"
        )
        assert parse_pip_show(output) == ("0.4.2", "/home/dev/.local/lib/python3.12/site-packages")

    def test_parse_pip_show_missing(self):
        assert parse_pip_show("") == ("", "")
        assert parse_pip_show("WARNING: Package(s) not found: rapidkit-core") == ("", "")

    def test_parse_poetry_show(self):
        output = "name         : rapidkit-core\nversion      : 0.5.0\ndescription  : core\n"
        assert parse_poetry_show(output) == "0.5.0"
        assert parse_poetry_show("") == ""

    def test_parse_conda_list_exact_name(self):
        output = (
            "# packages in environment at /opt/conda:\n"
            "#\n"
            "# Name                    Version                   Build  Channel\n"
            "rapidkit-core-extras      9.9.9                    pypi_0    pypi\n"
            "rapidkit-core             0.4.1                    pypi_0    pypi\n"
        )
        assert parse_conda_list(output, "rapidkit-core") == "0.4.1"
        assert parse_conda_list(output, "missing") == ""

    def test_pipx_listing_healthy(self):
        output = (
            "venvs are in /home/dev/.local/share/pipx/venvs\n"
            "   package rapidkit-core 0.4.2, installed using Python 3.12.1\n"
            "    - rapidkit\n"
        )
        assert pipx_listing(output, "rapidkit-core") == (True, False)

    def test_pipx_listing_broken(self):
        output = (
            "   package black 24.1.0, installed using Python 3.12.1\n"
            "    - black\n"
            "   package rapidkit-core 0.4.2, installed using Python 3.12.1\n"
            "    - rapidkit (symlink missing or pointing to unexpected location)\n"
        )
        assert pipx_listing(output, "rapidkit-core") == (True, True)
        assert pipx_listing(output, "black") == (True, False)

    def test_pipx_listing_absent(self):
        assert pipx_listing("nothing has been installed with pipx 😴", "rapidkit-core") == (False, False)

    def test_extract_version_number(self):
        assert extract_version_number("rapidkit 1.2.3b1 (python 3.12)") == "1.2.3b1"
        assert extract_version_number("no digits") == ""
