from __future__ import annotations

from pathlib import Path

import pytest

from ampy_commander import cli
from ampy_commander.services.ampy import AmpyOutput, ResetMode


class StubAmpy:
    """Records facade calls made by the CLI."""

    instances: list[StubAmpy] = []
    output = AmpyOutput("/boot.py\n/main.py", "")

    def __init__(self, com_port: int, executable: str = "ampy") -> None:
        self.com_port = com_port
        self.executable = executable
        self.device = f"COM{com_port}"
        self.calls: list[tuple] = []
        StubAmpy.instances.append(self)

    async def list_directory(self, directory="/", long_format=False, recursive=False):
        self.calls.append(("ls", directory, long_format, recursive))
        return self.output

    async def get_file_content(self, remote_file):
        self.calls.append(("get", remote_file))
        return self.output

    async def download_file(self, remote_file, local_file):
        self.calls.append(("download", remote_file, local_file))

    async def upload(self, local, remote=None):
        self.calls.append(("put", local, remote))

    async def remove_file(self, remote_file):
        self.calls.append(("rm", remote_file))

    async def create_directory(self, directory, exists_okay=False, make_parents=False):
        self.calls.append(("mkdir", directory, exists_okay, make_parents))

    async def remove_directory(self, remote_folder, missing_okay=False):
        self.calls.append(("rmdir", remote_folder, missing_okay))

    async def reset(self, mode=ResetMode.REPL):
        self.calls.append(("reset", mode))

    async def run(self, local_file):
        self.calls.append(("run", local_file))
        return self.output

    async def run_no_wait(self, local_file):
        self.calls.append(("run -n", local_file))


@pytest.fixture
def stub(monkeypatch: pytest.MonkeyPatch) -> type[StubAmpy]:
    StubAmpy.instances = []
    StubAmpy.output = AmpyOutput("/boot.py\n/main.py", "")
    monkeypatch.setattr(cli, "Ampy", StubAmpy)
    return StubAmpy


def test_ls_prints_output_block_only(stub, capsys):
    assert cli.main(["-p", "9", "ls"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines() == [cli.OUTPUT_BANNER, "/boot.py", "/main.py"]
    assert stub.instances[0].com_port == 9
    assert stub.instances[0].calls == [("ls", "/", False, False)]


def test_error_block_printed_when_tool_complains(stub, capsys):
    stub.output = AmpyOutput("", "Could not enter raw repl")
    cli.main(["get", "main.py"])
    out = capsys.readouterr().out
    assert cli.ERROR_BANNER in out
    assert out.rstrip().endswith("Could not enter raw repl")


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        (["ls", "/lib", "-l", "-r"], ("ls", "/lib", True, True)),
        (["get", "a.py", "b.py"], ("download", "a.py", "b.py")),
        (["put", "main.py"], ("put", "main.py", None)),
        (["put", "main.py", "/boot.py"], ("put", "main.py", "/boot.py")),
        (["rm", "x.py"], ("rm", "x.py")),
        (["mkdir", "/a/b", "--make-parents"], ("mkdir", "/a/b", False, True)),
        (["rmdir", "/a", "--missing-okay"], ("rmdir", "/a", True)),
        (["reset"], ("reset", ResetMode.REPL)),
        (["reset", "hard"], ("reset", ResetMode.HARD)),
        (["run", "blink.py"], ("run", "blink.py")),
        (["run", "-n", "blink.py"], ("run -n", "blink.py")),
    ],
)
def test_subcommands_map_to_facade(stub, argv, expected):
    assert cli.main(argv) == 0
    assert stub.instances[0].calls == [expected]


def test_reset_rejects_unknown_mode(stub):
    with pytest.raises(SystemExit) as exc:
        cli.main(["reset", "warm"])
    assert exc.value.code == 2
    assert stub.instances == []


def test_missing_executable_exits_non_zero(tmp_path: Path, capsys):
    rc = cli.main(["--executable", str(tmp_path / "absent"), "ls"])
    assert rc == 1
    assert "error:" in capsys.readouterr().err


def test_stream_prints_lines_and_returns_exit_code(fake_ampy: Path, capsys):
    rc = cli.main(["-p", "4", "--executable", str(fake_ampy), "run", "--stream", "blink.py"])
    captured = capsys.readouterr()
    assert rc == 3
    assert captured.out.splitlines() == ["line 0", "line 1", "line 2"]
    assert "warning: slow board" in captured.err
