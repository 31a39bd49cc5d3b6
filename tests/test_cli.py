"""End-to-end tests for the haymaker command."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from haymaker.cli import cli


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def run(*args: str):
    return CliRunner().invoke(cli, list(args))


class TestCli:
    def test_summary_then_build(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text(
            "X = 1\n"
            "Y = $(X)\n"
            "out_$(Y): dep\n"
            "\techo $(Y) > result\n"
            "dep:\n"
            "\techo dep > dep.txt\n"
        )
        result = run()
        assert result.exit_code == 0, result.output
        assert "X ≡ 1" in result.output
        assert "Y ≡ 1" in result.output
        assert "out_1: dep" in result.output
        assert "▶ echo 1 > result" in result.output
        assert (workdir / "result").read_text() == "1\n"
        assert (workdir / "dep.txt").exists()

    def test_summary_comes_before_execution(self, workdir: Path) -> None:
        (workdir / "hayfile").write_text("A = x\nall:\n\techo ran\n")
        result = run()
        assert result.exit_code == 0, result.output
        assert result.output.index("A ≡ x") < result.output.index("[all] ran")

    def test_explicit_hayfile(self, workdir: Path) -> None:
        (workdir / "build.hay").write_text("all:\n\ttrue\n")
        result = run("build.hay")
        assert result.exit_code == 0, result.output

    def test_no_hayfile(self, workdir: Path) -> None:
        result = run()
        assert result.exit_code == 1
        assert "No hayfile" in result.output

    def test_missing_explicit_hayfile(self, workdir: Path) -> None:
        result = run("nope.hay")
        assert result.exit_code == 1

    def test_structure_error(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("X = 1\n\techo stray\n")
        result = run()
        assert result.exit_code == 1
        assert "error[Structure]" in result.output
        assert "stray shell code outside of a recipe" in result.output
        assert "Hayfile:2:2" in result.output

    def test_subcall_error_with_help(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("all: $(NOPE)\n")
        result = run()
        assert result.exit_code == 1
        assert "error[Subcall]" in result.output
        assert "note: this was all: $(NOPE)" in result.output
        assert "help: place a + before the line" in result.output

    def test_neglected_include_continues(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("-include missing.hay\nall:\n\ttrue\n")
        result = run()
        assert result.exit_code == 0, result.output
        assert "error[Include]" in result.output

    def test_include_without_neglect_aborts(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("include missing.hay\nall:\n\ttrue\n")
        result = run()
        assert result.exit_code == 1
        assert "file missing.hay does not exist" in result.output

    def test_cycle(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("a: b\nb: c\nc: a\n")
        result = run()
        assert result.exit_code == 1
        assert "Cycle" in result.output

    def test_dangling_prerequisite(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("app: nowhere.c\n\ttrue\n")
        result = run()
        assert result.exit_code == 1
        assert "nowhere.c" in result.output

    def test_failing_command(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("all:\n\texit 4\n")
        result = run()
        assert result.exit_code == 1
        assert "exit=4" in result.output

    def test_failure_in_duplicate_target_is_not_masked(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("all:\n\texit 3\nall:\n\tsleep 0.5\n")
        result = run("--workers", "2")
        assert result.exit_code == 1
        assert "all: FAILED" in result.output

    def test_command_uses_variable_defined_below(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("all:\n\techo $(LATER) > out\nLATER = x\n")
        result = run()
        assert result.exit_code == 0, result.output
        assert (workdir / "out").read_text() == "x\n"

    def test_dry_run_executes_nothing(self, workdir: Path) -> None:
        (workdir / "Hayfile").write_text("all: dep\n\ttouch all.txt\ndep:\n\ttouch dep.txt\n")
        result = run("--dry-run")
        assert result.exit_code == 0, result.output
        assert "Frontier 1: dep" in result.output
        assert "Frontier 2: all" in result.output
        assert not (workdir / "all.txt").exists()
        assert not (workdir / "dep.txt").exists()
