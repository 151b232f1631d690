"""Tests for the pyfib create-rsp wizard."""

import pytest
from pyfib import create_rsp, main, parse_args, prompt_bundle_options


def _answers(*values):
    """Return an input function that replays `values`, then hits EOF."""
    remaining = list(values)
    prompts = []

    def fake_input(prompt):
        prompts.append(prompt)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    fake_input.prompts = prompts
    return fake_input


class TestPromptBundleOptions:
    """Test prompt_bundle_options function."""

    def test_all_answers(self):
        messages = []
        options = prompt_bundle_options(
            _answers(" JS ", "out.txt", "yes", "type", "yes", "Jane"),
            messages.append,
        )
        assert options == {
            "language": "js",
            "output": "out.txt",
            "note": True,
            "sort": "type",
            "remove_empty_lines": True,
            "author": "Jane",
        }
        assert "You selected: js" in messages
        assert "Sorting method selected: type" in messages

    def test_defaults(self):
        options = prompt_bundle_options(
            _answers("java", "", "no", "", "", ""), lambda message: None
        )
        assert options["output"] == "bundle.txt"
        assert options["note"] is False
        assert options["sort"] == "name"
        assert options["remove_empty_lines"] is False
        assert options["author"] is None

    def test_reprompts_invalid_language(self):
        messages = []
        input_fn = _answers("python", "", "c#", "o.txt", "no", "name", "no", "")
        options = prompt_bundle_options(input_fn, messages.append)
        assert options["language"] == "c#"
        assert sum(p.startswith("Language") for p in input_fn.prompts) == 3
        assert any(m.startswith("Invalid input.") for m in messages)

    def test_reprompts_invalid_sort(self):
        input_fn = _answers("all", "o.txt", "no", "size", "TYPE", "no", "")
        options = prompt_bundle_options(input_fn, lambda message: None)
        assert options["sort"] == "type"
        assert sum(p.startswith("Sort files") for p in input_fn.prompts) == 2

    def test_eof(self):
        with pytest.raises(EOFError):
            prompt_bundle_options(_answers("js"), lambda message: None)


class TestCreateRsp:
    """Test create_rsp function and the create-rsp command."""

    def test_writes_single_line(self, tmp_path):
        messages = []
        rsp = create_rsp(
            tmp_path / "bundle.rsp",
            _answers("js", "my out.txt", "yes", "name", "no", "Jane Doe"),
            messages.append,
        )
        content = rsp.read_text(encoding="utf-8")
        assert content == (
            'bundle --language "js" --output "my out.txt" --note --sort "name"'
            ' --author "Jane Doe"'
        )
        assert "\n" not in content
        assert messages[-2] == f"Response file created: {rsp}"

    def test_round_trip_through_parser(self, tmp_path):
        rsp = create_rsp(
            tmp_path / "bundle.rsp",
            _answers("c#", "out dir/b.txt", "yes", "type", "yes", 'Jane "JD"'),
            lambda message: None,
        )
        args = parse_args([f"@{rsp}"])
        assert args.command == "bundle"
        assert args.language == "c#"
        assert args.output == "out dir/b.txt"
        assert args.note is True
        assert args.sort == "type"
        assert args.remove_empty_lines is True
        assert args.author == 'Jane "JD"'

    def test_command(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            "builtins.input", _answers("java", "", "no", "", "no", "")
        )
        assert main(["create-rsp"]) == 0
        assert (tmp_path / "bundle.rsp").read_text(encoding="utf-8") == (
            'bundle --language "java" --output "bundle.txt" --sort "name"'
        )

    def test_command_eof(self, tmp_path, monkeypatch, caplog):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("builtins.input", _answers())
        assert main(["create-rsp"]) == 1
        assert "Input ended" in caplog.text
        assert not (tmp_path / "bundle.rsp").exists()
