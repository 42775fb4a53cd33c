"""Unit tests for the makegen command line."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from makegen.cli import main
from makegen.cli_utils import ConfigResolver, ErrorFormatter, build_config


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("MAKEGEN_PREFIX", "MAKEGEN_INTERMEDIATE", "MAKEGEN_OUTPUT", "MAKEGEN_INSTALL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def model_path(tmp_path):
    path = tmp_path / "project.json"
    path.write_text(
        json.dumps(
            {
                "name": "demo",
                "modules": [
                    {
                        "name": "foo",
                        "type": "staticlibrary",
                        "path": "lib/foo",
                        "files": ["lib/foo/foo.c"],
                    }
                ],
            }
        )
    )
    return path


@pytest.fixture
def patched_probe(fixed_probe):
    with patch("makegen.build.orchestrator.ToolchainProbe", return_value=fixed_probe):
        yield fixed_probe


def run_main(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestGenerateCommand:
    """Tests for `makegen generate`."""

    def test_generates_makefile(self, model_path, patched_probe, capsys):
        assert run_main(["generate", str(model_path)]) == 0

        makefile = model_path.parent / "makefile.auto"
        text = makefile.read_text()
        assert "FOO_TARGET := $(OUTPUT)/lib/foo/libfoo.a\n" in text
        assert f"MAKEGEN_FLAGS := generate {model_path}\n" in text
        assert "Makefile generated!" in capsys.readouterr().out

    def test_output_option(self, model_path, patched_probe):
        assert run_main(["generate", str(model_path), "-o", "custom.mak"]) == 0

        assert (model_path.parent / "custom.mak").exists()

    def test_check_module_only(self, model_path, patched_probe, capsys):
        assert run_main(["generate", str(model_path), "--check-module", "nope"]) == 0

        assert "Module 'nope' does not exist" in capsys.readouterr().out
        assert not (model_path.parent / "makefile.auto").exists()
        assert patched_probe.calls == 0

    def test_invalid_model_exits_with_error(self, model_path, patched_probe, capsys):
        model_path.write_text(json.dumps({"name": "demo", "modules": [{"name": "x", "type": "firmware"}]}))

        assert run_main(["generate", str(model_path)]) == 1

        output = capsys.readouterr().out
        assert "Generation failed!" in output
        assert "firmware" in output

    def test_missing_model_file(self, tmp_path):
        assert run_main(["generate", str(tmp_path / "missing.json")]) == 2

    def test_keyboard_interrupt(self, model_path):
        with patch("makegen.cli.load_project", side_effect=KeyboardInterrupt):
            assert run_main(["generate", str(model_path)]) == 130

    def test_no_command_prints_help(self, capsys):
        assert run_main([]) == 0

        assert "generate" in capsys.readouterr().out


class TestConfigResolution:
    """Tests for configuration assembly."""

    def test_generator_arguments_drop_run_only_options(self):
        argv = ["generate", "p.json", "-v", "--check-module", "foo", "-o", "x.mak", "--check-module=bar"]

        assert ConfigResolver.generator_arguments(argv) == "generate p.json -o x.mak"

    def test_generator_arguments_keep_dependency_check_enabled(self):
        argv = ["generate", "p.json", "--no-auto-deps", "-c", "x.ini"]

        assert ConfigResolver.generator_arguments(argv) == "generate p.json -c x.ini"

    def test_generator_arguments_are_quoted(self):
        assert ConfigResolver.generator_arguments(["generate", "my project.json"]) == (
            "generate 'my project.json'"
        )

    def test_ini_beside_model_is_used(self, model_path):
        (model_path.parent / "makegen.ini").write_text("[makegen]\noutput = out\n")

        config = build_config(model_path)

        assert config.output_path == "out"
        assert config.project_root == model_path.parent.resolve()

    def test_flags_override_ini(self, model_path, tmp_path):
        ini = tmp_path / "other.ini"
        ini.write_text("[makegen]\nmakefile = a.mak\nautomatic_dependencies = yes\n")

        config = build_config(
            model_path,
            config_path=ini,
            makefile="b.mak",
            verbose=True,
            automatic_dependencies=False,
        )

        assert config.makefile == "b.mak"
        assert config.verbose
        assert not config.automatic_dependencies

    def test_no_ini(self, model_path):
        assert ConfigResolver.find_config_file(model_path) is None
        assert ConfigResolver.find_config_file(model_path, Path("x.ini")) == Path("x.ini")


class TestErrorFormatter:
    """Tests for ErrorFormatter output."""

    def test_print_error(self, capsys):
        ErrorFormatter.print_error("Generation failed!", "details")

        output = capsys.readouterr().out
        assert "Generation failed!" in output
        assert "details" in output

    def test_unexpected_error_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            ErrorFormatter.handle_unexpected_error(ValueError("bad"))

        assert exc_info.value.code == 1
        assert "ValueError: bad" in capsys.readouterr().out
