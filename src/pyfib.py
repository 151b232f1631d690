#!/usr/bin/env python3
"""
pyfib: bundle source files from a directory tree into a single file.

The `bundle` command walks a directory, skips build-artifact folders, keeps
the files written in the requested language, orders them by name or by
extension and concatenates them into one output file. Every file is wrapped
in `// Start of file` / `// End of file` comment markers, optionally preceded
by a `// Source` comment holding its relative path.

The `create-rsp` command asks for the same options interactively and stores
a ready-to-use `bundle` invocation in a response file, which can be replayed
later with `pyfib @bundle.rsp`.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shlex
import sys
from typing import Callable, Iterable, Optional


VALID_LANGUAGES = ("c#", "java", "js", "all")
VALID_SORT_KEYS = ("name", "type")
EXCLUDED_DIRS = ("bin", "obj", "debug", "release")

DEFAULT_SORT_KEY = "name"
DEFAULT_RSP_FILENAME = "bundle.rsp"
DEFAULT_RSP_OUTPUT = "bundle.txt"

logger = logging.getLogger(__name__)


# -- ColorFormatter (matches the rest of the toolbox) --
class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[36m",  # CYAN
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[41m",  # Red bg
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelno, "")
        message = super().format(record)
        if color:
            message = f"{color}{message}{self.RESET}"
        return message


class BundleError(Exception):
    """Base class for every failure that aborts a bundle operation."""


class InvalidLanguageError(BundleError, ValueError):
    pass


class InvalidSortError(BundleError, ValueError):
    pass


class NoFilesFoundError(BundleError):
    pass


class BundleIOError(BundleError):
    """A read, write or permission fault while collecting or emitting."""


@dataclass(frozen=True)
class BundleRequest:
    """Validated options for a single bundle operation.

    Attributes:
        language (str):
            Lower-cased language token, or "all".
        output (Path):
            Destination of the bundle. Truncated if it already exists.
        note (bool):
            Emit a `// Source:` comment with the relative path of each file.
        sort (str):
            Either "name" or "type".
        remove_empty_lines (bool):
            Drop blank and whitespace-only lines from every file.
        author (str | None):
            Optional author written as the first line of the bundle.
        root (Path):
            Directory to walk.
    """

    language: str
    output: Path
    note: bool = False
    sort: str = DEFAULT_SORT_KEY
    remove_empty_lines: bool = False
    author: Optional[str] = None
    root: Path = Path(".")


@dataclass(frozen=True)
class FileEntry:
    """A collected file: its absolute path and its path relative to the cwd."""

    path: Path
    relative_path: str

    @property
    def name(self) -> str:
        return self.path.name


def validate_options(
    language: str,
    sort: str,
    languages: Iterable[str] = VALID_LANGUAGES,
    sort_keys: Iterable[str] = VALID_SORT_KEYS,
) -> tuple[str, str]:
    """Check the language and sort tokens against the allowed values.

    The language is checked first and only the first failure is reported.

    Args:
        language (str): Raw language token, any case.
        sort (str): Raw sort token, any case.
        languages (Iterable[str]): Allowed language tokens.
        sort_keys (Iterable[str]): Allowed sort keys.

    Returns:
        tuple[str, str]: The normalized (lower-cased) language and sort key.

    Raises:
        InvalidLanguageError: If the language is not one of `languages`.
        InvalidSortError: If the sort key is not one of `sort_keys`.
    """
    languages = tuple(languages)
    sort_keys = tuple(sort_keys)

    language = language.strip().lower()
    if language not in languages:
        raise InvalidLanguageError(
            f"Invalid language. Supported options: {', '.join(languages)}"
        )

    sort = sort.strip().lower()
    if sort not in sort_keys:
        raise InvalidSortError(
            f"Invalid sort option. Supported options: {', '.join(sort_keys)}"
        )

    return language, sort


def _is_excluded(rel_path: str, excluded: Iterable[str] = EXCLUDED_DIRS) -> bool:
    # Plain substring test, not a path-segment match: "binoculars.js" is
    # excluded as well.
    return any(token in rel_path for token in excluded)


def _matches_language(path: Path, language: str) -> bool:
    if language == "all":
        return True
    # The token is used literally, so "c#" expects files ending in ".c#".
    return path.name.lower().endswith(f".{language}".lower())


def _current_directory() -> Path:
    try:
        return Path.cwd()
    except OSError as e:
        raise BundleIOError(f"Could not determine the working directory: {e}") from e


def _raise_walk_error(error: OSError) -> None:
    raise BundleIOError(f"Could not read directory {error.filename}: {error}") from error


def _walk_files(root: Path) -> list[Path]:
    """Return every file under `root`, in path order.

    Any directory that cannot be listed aborts the walk.
    """
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        for filename in filenames:
            path = Path(dirpath) / filename
            if path.is_file():
                files.append(path)
    return sorted(files)


def collect_files(
    root: Path,
    language: str,
    cwd: Optional[Path] = None,
    excluded: Iterable[str] = EXCLUDED_DIRS,
) -> list[FileEntry]:
    """
    Collect every file under `root` written in `language`, skipping those
    whose path contains one of the `excluded` tokens.

    Args:
        root (Path):
            Directory to walk recursively.
        language (str):
            Normalized language token, or "all" to keep every file.
        cwd (Path | None):
            Directory the relative paths are computed against. Captured once
            from the process working directory when not given.
        excluded (Iterable[str]):
            Substrings that exclude a file when found in its root-relative
            path.

    Returns:
        list[FileEntry]:
            The matching files, in path order.

    Raises:
        BundleIOError: If the root does not exist or cannot be walked.
    """
    root = Path(root)
    cwd = Path(cwd).resolve() if cwd is not None else _current_directory()
    excluded = tuple(excluded)

    if not root.is_dir():
        raise BundleIOError(f"Root directory '{root}' does not exist.")

    logger.debug("Collecting files from root: %s", root)
    logger.debug("Language filter: %s", language)
    logger.debug("Excluded tokens: %s", excluded)

    entries: list[FileEntry] = []
    for path in _walk_files(root):
        rel_to_root = str(path.relative_to(root))
        # Tested against the root-relative path rather than the full path, so
        # a root that itself lives under e.g. "~/debugging/" still bundles.
        if _is_excluded(rel_to_root, excluded):
            logger.debug("    x %s (excluded)", rel_to_root)
            continue

        if not _matches_language(path, language):
            continue

        abs_path = path.resolve()
        entries.append(
            FileEntry(path=abs_path, relative_path=os.path.relpath(abs_path, cwd))
        )
        logger.debug("    - %s", rel_to_root)

    return entries


def file_extension(name: str) -> str:
    """Return the extension of `name` including the dot, or "" if it has none."""
    index = name.rfind(".")
    return name[index:] if index >= 0 else ""


def sort_files(files: list[FileEntry], sort: str) -> list[FileEntry]:
    """Order files by bare name ("name") or by extension ("type").

    The sort is stable, so ties keep their collection order.
    """
    if sort == "type":
        return sorted(files, key=lambda entry: file_extension(entry.name))
    if sort == "name":
        return sorted(files, key=lambda entry: entry.name)
    raise InvalidSortError(
        f"Invalid sort option. Supported options: {', '.join(VALID_SORT_KEYS)}"
    )


def filter_lines(lines: list[str], remove_empty_lines: bool) -> list[str]:
    """Drop empty and whitespace-only lines when `remove_empty_lines` is set."""
    if not remove_empty_lines:
        return lines
    return [line for line in lines if line.strip()]


def read_lines(path: Path) -> list[str]:
    """Read a file as a list of lines without their terminators.

    Universal newlines are used, so `\\n`, `\\r\\n` and `\\r` all end a line.
    Undecodable bytes are replaced instead of failing the bundle.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\n") for line in f]


def write_bundle(
    files: list[FileEntry],
    output: Path,
    note: bool = False,
    remove_empty_lines: bool = False,
    author: Optional[str] = None,
) -> Path:
    """Write the bundle for `files`, in the given order, to `output`.

    Args:
        files (list[FileEntry]):
            Files to emit, already sorted.
        output (Path):
            Destination file. Created or truncated.
        note (bool):
            Emit a `// Source:` line before each file.
        remove_empty_lines (bool):
            Strip blank lines from each file's content.
        author (str | None):
            Author written on the first line when non-blank.

    Returns:
        Path:
            The path of the written bundle.

    Raises:
        BundleIOError: On any read or write error. The partially written
            output is left on disk.
    """
    try:
        with open(output, "w", encoding="utf-8") as out:
            if author and author.strip():
                out.write(f"// Author: {author}\n")

            for entry in files:
                if note:
                    out.write(f"// Source: {entry.relative_path}\n")

                content = filter_lines(read_lines(entry.path), remove_empty_lines)

                out.write(f"// Start of file: {entry.name}\n")
                # No newline after the block: a non-empty file's last line runs
                # straight into the end marker.
                out.write("\n".join(content))
                out.write(f"// End of file: {entry.name}\n")
    except OSError as e:
        raise BundleIOError(str(e)) from e

    return output


def build_request(args: argparse.Namespace) -> BundleRequest:
    """Validate the parsed `bundle` arguments and freeze them into a request."""
    language, sort = validate_options(args.language, args.sort)
    return BundleRequest(
        language=language,
        output=Path(args.output),
        note=args.note,
        sort=sort,
        remove_empty_lines=args.remove_empty_lines,
        author=args.author,
        root=Path(args.root),
    )


def bundle(request: BundleRequest, cwd: Optional[Path] = None) -> Path:
    """Run the whole pipeline for `request`.

    Returns:
        Path:
            The absolute path of the written bundle.

    Raises:
        NoFilesFoundError: If nothing matches. The output is not touched.
        BundleIOError: On any filesystem error.
    """
    cwd = Path(cwd) if cwd is not None else _current_directory()

    files = collect_files(request.root, request.language, cwd=cwd)
    if not files:
        raise NoFilesFoundError(
            "No files found to bundle for the specified language."
        )
    logger.debug("Collected %d files.", len(files))

    files = sort_files(files, request.sort)

    output = request.output
    if not output.is_absolute():
        output = cwd / output

    return write_bundle(
        files,
        output,
        note=request.note,
        remove_empty_lines=request.remove_empty_lines,
        author=request.author,
    )


def run_bundle(args: argparse.Namespace) -> int:
    """Handler of the `bundle` command.

    Every failure is turned into a single error line.

    Returns:
        int:
            Exit code (0 for success, 1 on failure).
    """
    try:
        request = build_request(args)
        output = bundle(request)
    except BundleError as e:
        logger.error("%s", e)
        return 1

    logger.info("Bundling completed. Output file created at: %s", output.resolve())
    return 0


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_rsp_command(
    language: str,
    output: str,
    note: bool = False,
    sort: str = DEFAULT_SORT_KEY,
    remove_empty_lines: bool = False,
    author: Optional[str] = None,
) -> str:
    """Build the single-line `bundle` invocation stored in a response file.

    Example:
        >>> build_rsp_command("js", "out.txt", note=True)
        'bundle --language "js" --output "out.txt" --note --sort "name"'
    """
    command = f"bundle --language {_quote(language)} --output {_quote(output)}"
    if note:
        command += " --note"
    command += f" --sort {_quote(sort)}"
    if remove_empty_lines:
        command += " --remove-empty-lines"
    if author and author.strip():
        command += f" --author {_quote(author)}"
    return command


def _ask(input_fn: Callable[[str], str], prompt: str) -> str:
    return input_fn(prompt).strip()


def prompt_bundle_options(
    input_fn: Optional[Callable[[str], str]] = None,
    output_fn: Optional[Callable[[str], None]] = None,
) -> dict:
    """Ask the user for every `bundle` option, re-prompting on invalid input.

    Args:
        input_fn (Callable[[str], str]):
            Reads one answer after showing a prompt. Defaults to `input`.
        output_fn (Callable[[str], None]):
            Shows a message. Defaults to `print`.

    Returns:
        dict:
            Keyword arguments for `build_rsp_command`.

    Raises:
        EOFError: If the input ends before every question is answered.
    """
    input_fn = input_fn or input
    output_fn = output_fn or print

    output_fn("Enter the values for the following options:")

    while True:
        language = _ask(input_fn, "Language (c#, java, js, or all): ").lower()
        if language in VALID_LANGUAGES:
            break
        output_fn(
            "Invalid input. Please enter one of the following options: "
            "c#, java, js, or all."
        )
    output_fn(f"You selected: {language}")

    output = _ask(input_fn, "Output file path (e.g., output.txt): ")
    if not output:
        output = DEFAULT_RSP_OUTPUT

    note = _ask(input_fn, "Include note with file paths? (yes/no): ").lower() == "yes"

    while True:
        sort = _ask(input_fn, "Sort files by (name/type) [default: name]: ").lower()
        if not sort:
            sort = DEFAULT_SORT_KEY
        if sort in VALID_SORT_KEYS:
            break
        output_fn("Invalid input. Please choose 'name' or 'type'.")
    output_fn(f"Sorting method selected: {sort}")

    remove_empty_lines = _ask(input_fn, "Remove empty lines? (yes/no): ").lower() == "yes"

    author = _ask(input_fn, "Author name (optional): ")

    return {
        "language": language,
        "output": output,
        "note": note,
        "sort": sort,
        "remove_empty_lines": remove_empty_lines,
        "author": author or None,
    }


def create_rsp(
    rsp_file: Path = Path(DEFAULT_RSP_FILENAME),
    input_fn: Optional[Callable[[str], str]] = None,
    output_fn: Optional[Callable[[str], None]] = None,
) -> Path:
    """Run the interactive wizard and write the response file.

    Returns:
        Path:
            The path of the written response file.
    """
    output_fn = output_fn or print
    options = prompt_bundle_options(input_fn, output_fn)
    command = build_rsp_command(**options)
    rsp_file.write_text(command, encoding="utf-8")

    output_fn(f"Response file created: {rsp_file}")
    output_fn(f"To run the command, use: pyfib @{rsp_file}")
    return rsp_file


def run_create_rsp(args: argparse.Namespace) -> int:
    """Handler of the `create-rsp` command."""
    try:
        create_rsp(Path(args.rsp_file))
    except EOFError:
        logger.error("Input ended before all options were entered.")
        return 1
    except OSError as e:
        logger.error("Could not write response file %s: %s", args.rsp_file, e)
        return 1
    return 0


class ResponseFileParser(argparse.ArgumentParser):
    """ArgumentParser whose `@file` arguments use shell-like quoting.

    The response file written by `create-rsp` holds a whole command on one
    line with double-quoted values, so each line is split with `shlex`.
    """

    def convert_arg_line_to_args(self, arg_line: str) -> list[str]:
        return shlex.split(arg_line)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv (list[str] | None):
            List of command-line arguments. If None, uses sys.argv.

    Returns:
        argparse.Namespace:
            Parsed arguments.
    """
    parser = ResponseFileParser(
        prog="pyfib",
        description="Bundle code files from a directory tree into a single file.",
        epilog="Arguments can be read from a response file with @FILE.",
        fromfile_prefix_chars="@",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    bundle_parser = subparsers.add_parser(
        "bundle",
        help="Bundle code files into a single file",
        description="Bundle code files into a single file.",
    )
    bundle_parser.add_argument(
        "-l",
        "--language",
        required=True,
        help="Programming language to bundle (c#, java, js). Use 'all' to include all files.",
    )
    bundle_parser.add_argument(
        "-o",
        "--output",
        required=True,
        help="File path and name for the bundled output",
    )
    bundle_parser.add_argument(
        "-n",
        "--note",
        action="store_true",
        help="Include the source file's relative path as a comment in the bundle",
    )
    bundle_parser.add_argument(
        "-s",
        "--sort",
        default=DEFAULT_SORT_KEY,
        help="Sort files by 'name' or 'type' (default: name)",
    )
    bundle_parser.add_argument(
        "-r",
        "--remove-empty-lines",
        action="store_true",
        help="Remove empty lines from files",
    )
    bundle_parser.add_argument(
        "-a",
        "--author",
        default=None,
        help="Include the author's name in the bundle as a comment",
    )
    bundle_parser.add_argument(
        "--root",
        type=str,
        default=".",
        help="Root directory to bundle (default: current dir)",
    )
    bundle_parser.set_defaults(handler=run_bundle)

    rsp_parser = subparsers.add_parser(
        "create-rsp",
        help="Create a response file for the bundle command",
        description="Interactively create a response file for the bundle command.",
    )
    rsp_parser.add_argument(
        "--rsp-file",
        type=str,
        default=DEFAULT_RSP_FILENAME,
        help=f"Response file to write (default: {DEFAULT_RSP_FILENAME})",
    )
    rsp_parser.set_defaults(handler=run_create_rsp)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the pyfib command-line tool.

    Args:
        argv (list[str] | None):
            Command-line arguments. If None, uses sys.argv.

    Returns:
        int:
            Exit code (0 for success).
    """
    args = parse_args(argv)

    # Set up logging.
    for old_handler in list(logger.handlers):
        logger.removeHandler(old_handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter("%(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if args.verbose else logging.INFO)

    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
