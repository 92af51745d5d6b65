"""Tests for CLI startup checks."""

import os

import pytest

from gwipt import __version__
from gwipt.cli import build_parser, main


@pytest.fixture(autouse=True)
def restore_log_env(monkeypatch):
    """main() exports LOG_* variables; keep them from leaking between tests."""
    for key in ("LOG_FORMAT", "LOG_COLORS", "LOG_LEVEL"):
        monkeypatch.setenv(key, os.environ.get(key, ""))


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.workdir == "."
    assert args.time_delay is None
    assert args.transport is None
    assert not args.verbose


def test_parser_flags():
    args = build_parser().parse_args(
        ["-t", "0.5", "-C", "/tmp/x", "--transport", "completion", "--model", "m", "-v"]
    )

    assert args.time_delay == 0.5
    assert args.workdir == "/tmp/x"
    assert args.transport == "completion"
    assert args.model == "m"
    assert args.verbose


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])

    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_exits_outside_repository(tmp_path):
    lonely = tmp_path / "nowhere"
    lonely.mkdir()

    assert main(["-C", str(lonely)]) == 1


def test_exits_on_detached_head(git_repo):
    _name, sha = git_repo.head_branch()
    (git_repo.control_dir / "HEAD").write_text(sha.decode() + "\n")

    assert main(["-C", str(git_repo.root)]) == 1


def test_exits_on_unborn_branch(empty_repo):
    assert main(["-C", str(empty_repo.root)]) == 1


def test_loads_dotenv_from_repository_root(empty_repo):
    (empty_repo.root / ".env").write_text("GWIPT_DOTENV_PROBE=loaded\n")
    try:
        main(["-C", str(empty_repo.root)])
        assert os.environ["GWIPT_DOTENV_PROBE"] == "loaded"
    finally:
        os.environ.pop("GWIPT_DOTENV_PROBE", None)
