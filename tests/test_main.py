import json

import pytest
import yaml

from hsctl.cli.main import VERSION, build_parser, colors_enabled, main


class _Stream:
    def __init__(self, tty):
        self._tty = tty

    def isatty(self):
        return self._tty


def test_colors_on_for_terminal():
    assert colors_enabled(_Stream(True), {"TERM": "xterm"}) is True


def test_colors_off_when_not_terminal():
    assert colors_enabled(_Stream(False), {}) is False


def test_no_color_disables_colors():
    assert colors_enabled(_Stream(True), {"NO_COLOR": ""}) is False


def test_dumb_terminal_disables_colors():
    assert colors_enabled(_Stream(True), {"TERM": "dumb"}) is False


def test_stream_without_isatty_has_no_colors():
    assert colors_enabled(object(), {}) is False


def test_version_plain_output(capsys):
    assert main(["version"]) == 0
    assert capsys.readouterr().out == VERSION + "\n"


def test_version_default_is_dev(capsys):
    assert main(["version"]) == 0
    assert capsys.readouterr().out == "dev\n"


def test_version_json_output(capsys):
    assert main(["version", "-o", "json"]) == 0
    assert json.loads(capsys.readouterr().out) == {"version": VERSION}


def test_version_json_line_output_before_command(capsys):
    assert main(["--output", "json-line", "version"]) == 0
    out = capsys.readouterr().out
    assert out.strip() == json.dumps({"version": VERSION}, separators=(",", ":"))


def test_version_yaml_output(capsys):
    assert main(["version", "-o", "yaml"]) == 0
    assert yaml.safe_load(capsys.readouterr().out) == {"version": VERSION}


def test_global_flag_kept_when_subcommand_omits_it():
    args = build_parser().parse_args(["-o", "json", "version"])
    assert args.output == "json"
    assert args.command == "version"


def test_subcommand_flag_parsed():
    args = build_parser().parse_args(["version", "--force"])
    assert args.force is True


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "version" in capsys.readouterr().out


def test_unknown_command_fails():
    with pytest.raises(SystemExit) as excinfo:
        main(["bogus"])
    assert excinfo.value.code == 2