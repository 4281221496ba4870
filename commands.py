"""Parser for the `:h` workspace command surface."""

from __future__ import annotations

from dataclasses import dataclass

from config import COMMAND_SENTINEL
from errors import ValidationError

EDIT_SEPARATOR = "->"

USAGE_READ = "❓ Usage: :h cat <filename>"
USAGE_WRITE = "❓ Usage: :h write <filename> <content>"
USAGE_APPEND = "❓ Usage: :h append <filename> <content>"
USAGE_EDIT = "❓ Usage: :h edit <filename> <old_text> -> <new_text>"
USAGE_EDIT_EXAMPLE = f"{USAGE_EDIT}\n\nExample: :h edit README.md old text -> new text"


@dataclass(frozen=True, slots=True)
class List:
    dir: str | None = None


@dataclass(frozen=True, slots=True)
class Read:
    filename: str


@dataclass(frozen=True, slots=True)
class Write:
    filename: str
    content: str


@dataclass(frozen=True, slots=True)
class Append:
    filename: str
    content: str


@dataclass(frozen=True, slots=True)
class Edit:
    filename: str
    old_text: str
    new_text: str


@dataclass(frozen=True, slots=True)
class Help:
    pass


@dataclass(frozen=True, slots=True)
class Unknown:
    raw: str


@dataclass(frozen=True, slots=True)
class Bare:
    pass


WorkspaceCommand = List | Read | Write | Append | Edit | Help | Unknown | Bare


def _head(parts: list[str]) -> tuple[str, list[str]]:
    """First non-empty token and the untouched tokens after it."""
    for index, part in enumerate(parts):
        if part:
            return part, parts[index + 1 :]
    return "", []


def _split(text: str) -> list[str]:
    # Single spaces only: joining the tail back with " " restores the
    # argument text exactly, indentation and newlines included.
    return text.strip().split(" ")


def is_workspace_text(text: str) -> bool:
    sentinel, _ = _head(_split(text))
    return sentinel == COMMAND_SENTINEL


def parse_edit(args: list[str]) -> Edit:
    if sum(1 for part in args if part) < 3:
        raise ValidationError(USAGE_EDIT)

    joined = " ".join(args)
    index = joined.find(EDIT_SEPARATOR)
    if index == -1:
        raise ValidationError(USAGE_EDIT_EXAMPLE)

    before = joined[:index].strip()
    after = joined[index + len(EDIT_SEPARATOR) :].strip()
    filename, _, old_text = before.partition(" ")
    if not filename:
        raise ValidationError(USAGE_EDIT_EXAMPLE)
    return Edit(filename=filename, old_text=old_text, new_text=after)


def _file_and_content(args: list[str], usage: str) -> tuple[str, str]:
    filename, rest = _head(args)
    if not filename or not any(rest):
        raise ValidationError(usage)
    return filename, " ".join(rest)


def parse_command(text: str) -> WorkspaceCommand | None:
    """Parse `:h <command> <args...>`; None when `text` is not a workspace command.

    Raises `ValidationError` when a known command is missing arguments.
    """
    sentinel, rest = _head(_split(text))
    if sentinel != COMMAND_SENTINEL:
        return None

    name, args = _head(rest)
    if not name:
        return Bare()
    if name.startswith("/"):
        name = name[1:]

    if name == "ls":
        directory, _ = _head(args)
        return List(dir=directory or None)

    if name in {"cat", "read"}:
        filename = " ".join(args).strip()
        if not filename:
            raise ValidationError(USAGE_READ)
        return Read(filename=filename)

    if name == "write":
        filename, content = _file_and_content(args, USAGE_WRITE)
        return Write(filename=filename, content=content)

    if name == "append":
        filename, content = _file_and_content(args, USAGE_APPEND)
        return Append(filename=filename, content=content)

    if name == "edit":
        return parse_edit(args)

    if name == "help":
        return Help()

    return Unknown(raw=name)
