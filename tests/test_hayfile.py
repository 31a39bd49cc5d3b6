"""Tests for reading Hayfiles into variables and recipes."""

from pathlib import Path

import pytest

from haymaker.errors import SourceError
from haymaker.hayfile import load_hayfile, load_source


class TestAssignments:
    def test_simple(self) -> None:
        ctx = load_source("CC = gcc\nFLAGS = -O2 -Wall\n")
        assert list(ctx.variables.items()) == [("CC", "gcc"), ("FLAGS", "-O2 -Wall")]

    def test_chained_assignment_binds_literally(self) -> None:
        # a=b=1 binds b to "1" and a to the text "b", not to b's value
        ctx = load_source("a=b=1\n")
        assert list(ctx.variables.items()) == [("b", "1"), ("a", "b")]

    def test_several_names_on_the_left(self) -> None:
        ctx = load_source("X Y = 2\n")
        assert ctx.variables == {"X": "2", "Y": "2"}

    def test_reassignment_keeps_order(self) -> None:
        ctx = load_source("A = 1\nB = 2\nA = 3\n")
        assert list(ctx.variables.items()) == [("A", "3"), ("B", "2")]

    def test_values_are_stored_raw(self) -> None:
        ctx = load_source("X = 1\nY = $(X)\n")
        assert ctx.variables["Y"] == "$(X)"

    def test_escaped_equals_in_value(self) -> None:
        ctx = load_source("OPT = --level\\=3\n")
        assert ctx.variables["OPT"] == "--level=3"

    def test_forward_reference_is_an_error(self) -> None:
        with pytest.raises(SourceError) as info:
            load_source("all: $(LATER)\nLATER = x\n")
        assert info.value.kind == "Subcall"


class TestRecipes:
    def test_rule_and_commands(self) -> None:
        ctx = load_source("all: main.o\n\tcc -o app main.o\n\tstrip app\n")
        [recipe] = ctx.recipes
        assert recipe.targets == ["all"]
        assert recipe.prerequisites == ["main.o"]
        assert [c.text for c in recipe.commands] == ["cc -o app main.o", "strip app"]
        assert [c.lineno for c in recipe.commands] == [2, 3]

    def test_blank_lines_do_not_close_recipe(self) -> None:
        ctx = load_source("all:\n\techo a\n\n\techo b\n")
        assert [c.text for c in ctx.recipes[0].commands] == ["echo a", "echo b"]

    def test_debug_command(self) -> None:
        ctx = load_source("all:\n\t+echo loud\n")
        [command] = ctx.recipes[0].commands
        assert command.debug
        assert command.text == "echo loud"

    def test_commands_are_stored_underived(self) -> None:
        ctx = load_source("CC = gcc\nall:\n\t$(CC) -c main.c\n")
        assert ctx.recipes[0].commands[0].text == "$(CC) -c main.c"

    def test_command_may_reference_a_later_variable(self) -> None:
        ctx = load_source("all:\n\techo $(LATER)\nLATER = x\n")
        assert ctx.recipes[0].commands[0].text == "echo $(LATER)"
        assert ctx.variables["LATER"] == "x"

    def test_rule_deriving_to_nothing_is_skipped(self) -> None:
        ctx = load_source("EMPTY =\n$(EMPTY)\nall:\n")
        assert [r.targets for r in ctx.recipes] == [["all"]]

    def test_end_to_end_derivation(self) -> None:
        ctx = load_source("X = 1\nY = $(X)\nbuild_$(Y): \n\techo $(Y)\n")
        [recipe] = ctx.recipes
        assert recipe.targets == ["build_1"]
        assert recipe.commands[0].text == "echo $(Y)"
        assert recipe.render().splitlines()[0] == "build_1:"


class TestStructureErrors:
    @pytest.mark.parametrize("line", ["\techo hi", "\t-echo hi", "\t+echo hi", "\t-+echo hi"])
    def test_shell_line_without_rule(self, line: str) -> None:
        with pytest.raises(SourceError) as info:
            load_source(line + "\n")
        assert info.value.kind == "Structure"
        assert info.value.lineno == 1

    def test_assignment_closes_recipe(self) -> None:
        with pytest.raises(SourceError) as info:
            load_source("all:\n\techo a\nX = 1\n\techo b\n")
        assert info.value.kind == "Structure"
        assert info.value.lineno == 4


class TestSubcallErrors:
    def test_fatal_by_default(self) -> None:
        with pytest.raises(SourceError) as info:
            load_source("all: $(NOPE)\n", filename="Hayfile")
        error = info.value
        assert error.kind == "Subcall"
        assert error.filename == "Hayfile"
        assert error.lineno == 1
        assert error.column == 5
        assert error.notes == [
            "note: this was all: $(NOPE)",
            "help: place a + before the line to enable debug mode",
        ]

    def test_debug_marker_drops_help(self) -> None:
        with pytest.raises(SourceError) as info:
            load_source("+all: $(NOPE)\n")
        assert info.value.notes == ["note: this was all: $(NOPE)"]

    def test_neglect_skips_the_rule_and_its_commands(self) -> None:
        ctx = load_source("-all: $(NOPE)\n\techo never\nok:\n\techo fine\n")
        assert [r.targets for r in ctx.recipes] == [["ok"]]
        assert [c.text for c in ctx.recipes[0].commands] == ["echo fine"]

    def test_command_errors_wait_for_execution(self) -> None:
        ctx = load_source("all:\n\techo $(NOPE)\n\t-echo $(NOPE)\n", filename="Hayfile")
        first, second = ctx.recipes[0].commands
        assert (first.neglect, second.neglect) == (False, True)
        assert (first.filename, first.lineno, first.column) == ("Hayfile", 2, 1)

    def test_neglected_include_does_not_swallow_stray_commands(self) -> None:
        with pytest.raises(SourceError) as info:
            load_source("-include $(NOPE)\n\techo stray\n")
        assert info.value.kind == "Structure"
        assert info.value.lineno == 2


class TestParseErrors:
    def test_malformed_rule(self) -> None:
        with pytest.raises(SourceError) as info:
            load_source("all main.o\n")
        assert info.value.kind == "ParseError"

    def test_neglect_does_not_apply_to_rule_syntax(self) -> None:
        # rule syntax errors abort even on a neglected line
        with pytest.raises(SourceError) as info:
            load_source("-all main.o\nok:\n")
        assert info.value.kind == "ParseError"


class TestInclude:
    def test_include_reads_lines_into_same_context(self, tmp_path: Path) -> None:
        extra = tmp_path / "extra.hay"
        extra.write_text("CC = clang # compiler\nlib:\n\techo lib\n")
        ctx = load_source(f"include {extra}\nall: lib\n\t$(CC) main.c\n")
        assert ctx.variables["CC"] == "clang"
        assert [r.targets for r in ctx.recipes] == [["lib"], ["all"]]
        assert ctx.recipes[1].commands[0].text == "$(CC) main.c"

    def test_quoted_path_with_spaces(self, tmp_path: Path) -> None:
        extra = tmp_path / "my vars.hay"
        extra.write_text("X = 1\n")
        ctx = load_source(f"include '{extra}'\n")
        assert ctx.variables["X"] == "1"

    def test_include_path_from_variable(self, tmp_path: Path) -> None:
        extra = tmp_path / "extra.hay"
        extra.write_text("X = 1\n")
        ctx = load_source(f"DIR = {tmp_path}\ninclude $(DIR)/extra.hay\n")
        assert ctx.variables["X"] == "1"

    def test_missing_include_is_fatal(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing.hay"
        with pytest.raises(SourceError) as info:
            load_source(f"include {missing}\n")
        assert info.value.kind == "Include"
        assert info.value.column == 8

    def test_neglected_missing_include_continues(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing.hay"
        present = tmp_path / "present.hay"
        present.write_text("X = 1\n")
        ctx = load_source(f"-include {missing} {present}\nall:\n")
        assert ctx.variables["X"] == "1"
        assert [r.targets for r in ctx.recipes] == [["all"]]

    def test_circular_include(self, tmp_path: Path) -> None:
        a = tmp_path / "a.hay"
        b = tmp_path / "b.hay"
        a.write_text(f"include {b}\n")
        b.write_text(f"include {a}\n")
        with pytest.raises(SourceError) as info:
            load_hayfile(a)
        assert info.value.kind == "Include"
        assert info.value.filename == str(b)

    def test_errors_name_the_included_file(self, tmp_path: Path) -> None:
        extra = tmp_path / "extra.hay"
        extra.write_text("\n\techo stray\n")
        with pytest.raises(SourceError) as info:
            load_source(f"include {extra}\n", filename="Hayfile")
        assert info.value.filename == str(extra)
        assert info.value.lineno == 2
