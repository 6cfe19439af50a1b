"""Tests for the command-line entry point and its exit codes."""

import os

import pytest

from meuralize.config import VERSION_BANNER
from meuralize.main import main


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setattr(os, "environ", dict(os.environ))
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.chdir(tmp_path)


def test_missing_folder_argument_exits_1(capsys):
    assert main([]) == 1
    out = capsys.readouterr().out
    assert "Error: Please provide a folder path" in out
    assert "Usage: meuralize FOLDER_PATH" in out


def test_nonexistent_folder_exits_1(tmp_path, capsys):
    assert main([str(tmp_path / "missing")]) == 1
    assert "Error: Folder does not exist" in capsys.readouterr().out


def test_file_path_exits_1(tmp_path, capsys):
    path = tmp_path / "file.jpg"
    path.write_bytes(b"")
    assert main([str(path)]) == 1
    assert "Error: Path is not a directory" in capsys.readouterr().out


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["-v"])
    assert excinfo.value.code == 0
    assert VERSION_BANNER in capsys.readouterr().out


def test_help_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0
    assert "FOLDER_PATH" in capsys.readouterr().out


@pytest.mark.parametrize("limit", ["0", "-1", "1e-9", "inf", "nan"])
def test_unusable_size_limit_exits_1(tmp_path, capsys, limit):
    assert main([str(tmp_path), "--max-size-mb", limit]) == 1
    assert "Error: --max-size-mb" in capsys.readouterr().out


def test_size_limit_of_one_byte_is_accepted(tmp_path, capsys):
    assert main([str(tmp_path), "--max-size-mb", str(1 / (1024 * 1024))]) == 0
    assert "No supported image files found" in capsys.readouterr().out


def test_failures_inside_folder_still_exit_0(tmp_path, capsys):
    (tmp_path / "broken.png").write_bytes(b"not a png")

    assert main([str(tmp_path)]) == 0
    out = capsys.readouterr().out
    assert "Found 1 image(s) to process..." in out
    assert "✗ Error processing broken.png" in out
    assert "Processing complete!" in out


def test_empty_folder_exits_0(tmp_path, capsys):
    assert main([str(tmp_path)]) == 0
    assert "No supported image files found" in capsys.readouterr().out
