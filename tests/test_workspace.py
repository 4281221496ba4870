from __future__ import annotations

import os

import pytest

from errors import NotFound, PathViolation, TextNotFound
from workspace import Workspace, WorkspacePathGuard


def test_resolve_accepts_nested_relative_path(tmp_path):
    guard = WorkspacePathGuard(str(tmp_path))
    resolved = guard.resolve("notes/today.md", mutating=True)
    assert resolved == os.path.join(str(tmp_path), "notes", "today.md")


@pytest.mark.parametrize("name", ["../x", "notes/../../x", "/etc/passwd"])
def test_resolve_rejects_traversal_and_absolute_paths(tmp_path, name):
    guard = WorkspacePathGuard(str(tmp_path))
    with pytest.raises(PathViolation):
        guard.resolve(name)
    with pytest.raises(PathViolation):
        guard.resolve(name, mutating=True)


@pytest.mark.parametrize("name", [".env", "package.json", "tsconfig.json", ".gitignore", "./.env"])
def test_resolve_rejects_protected_files_for_mutation_only(tmp_path, name):
    guard = WorkspacePathGuard(str(tmp_path))
    with pytest.raises(PathViolation) as excinfo:
        guard.resolve(name, mutating=True)
    assert "protected" in excinfo.value.message
    assert guard.resolve(name).startswith(str(tmp_path))


def test_protected_name_in_subdirectory_is_writable(tmp_path):
    workspace = Workspace(str(tmp_path))
    workspace.write("app/package.json", "{}")
    assert (tmp_path / "app" / "package.json").read_text(encoding="utf-8") == "{}"


def test_write_creates_parent_directories_and_overwrites(tmp_path):
    workspace = Workspace(str(tmp_path))

    workspace.write("notes/today.md", "first")
    workspace.write("notes/today.md", "second")

    target = tmp_path / "notes" / "today.md"
    assert target.read_text(encoding="utf-8") == "second"
    assert [path.name for path in (tmp_path / "notes").iterdir()] == ["today.md"]


def test_write_to_protected_file_leaves_workspace_untouched(tmp_path):
    workspace = Workspace(str(tmp_path))
    with pytest.raises(PathViolation):
        workspace.write(".env", "TOKEN=leak")
    assert not (tmp_path / ".env").exists()


def test_read_returns_full_content(tmp_path):
    (tmp_path / "big.txt").write_text("x" * 5000, encoding="utf-8")
    workspace = Workspace(str(tmp_path))
    assert workspace.read("big.txt") == "x" * 5000


def test_read_allows_protected_file(tmp_path):
    (tmp_path / "package.json").write_text('{"name": "demo"}', encoding="utf-8")
    workspace = Workspace(str(tmp_path))
    assert workspace.read("package.json") == '{"name": "demo"}'


def test_read_missing_file_raises_not_found(tmp_path):
    workspace = Workspace(str(tmp_path))
    with pytest.raises(NotFound) as excinfo:
        workspace.read("missing.md")
    assert excinfo.value.message == "❌ File not found: missing.md"


def test_append_creates_missing_file(tmp_path):
    workspace = Workspace(str(tmp_path))
    workspace.append("log.md", "first")
    assert (tmp_path / "log.md").read_text(encoding="utf-8") == "first"


def test_append_is_not_idempotent(tmp_path):
    workspace = Workspace(str(tmp_path))
    workspace.append("log.md", "Z")
    workspace.append("log.md", "Z")
    assert (tmp_path / "log.md").read_text(encoding="utf-8") == "Z\nZ"


def test_append_does_not_double_existing_newline(tmp_path):
    (tmp_path / "log.md").write_text("line\n", encoding="utf-8")
    workspace = Workspace(str(tmp_path))
    workspace.append("log.md", "next")
    assert (tmp_path / "log.md").read_text(encoding="utf-8") == "line\nnext"


def test_append_to_protected_file_is_rejected(tmp_path):
    workspace = Workspace(str(tmp_path))
    with pytest.raises(PathViolation):
        workspace.append(".gitignore", "*.pyc")
    assert not (tmp_path / ".gitignore").exists()


def test_edit_replaces_first_occurrence_only(tmp_path):
    (tmp_path / "a.md").write_text("a a a", encoding="utf-8")
    workspace = Workspace(str(tmp_path))

    updated = workspace.edit("a.md", "a", "b")

    assert updated == "b a a"
    assert (tmp_path / "a.md").read_text(encoding="utf-8") == "b a a"


def test_edit_missing_text_leaves_file_byte_for_byte(tmp_path):
    original = "Hello World\r\nsecond line\n".encode("utf-8")
    (tmp_path / "a.md").write_bytes(original)
    workspace = Workspace(str(tmp_path))

    with pytest.raises(TextNotFound) as excinfo:
        workspace.edit("a.md", "X", "Y")

    assert (tmp_path / "a.md").read_bytes() == original
    assert '"X"' in excinfo.value.message


def test_edit_missing_file_raises_not_found(tmp_path):
    workspace = Workspace(str(tmp_path))
    with pytest.raises(NotFound):
        workspace.edit("missing.md", "a", "b")


def test_list_caps_entries_and_reports_remaining(tmp_path):
    for index in range(25):
        (tmp_path / f"file{index:02d}.txt").write_text("", encoding="utf-8")
    workspace = Workspace(str(tmp_path))

    listing = workspace.list()

    assert len(listing.entries) == 20
    assert listing.remaining == 5
    assert listing.entries[0].name == "file00.txt"


def test_list_marks_directories(tmp_path):
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "guide.md").write_text("", encoding="utf-8")
    (tmp_path / "readme.md").write_text("", encoding="utf-8")
    workspace = Workspace(str(tmp_path))

    root = workspace.list()
    nested = workspace.list("docs")

    assert [(entry.name, entry.is_dir) for entry in root.entries] == [
        ("docs", True),
        ("readme.md", False),
    ]
    assert nested.path == "docs"
    assert [entry.name for entry in nested.entries] == ["guide.md"]
    assert nested.remaining == 0


def test_list_missing_directory_raises_not_found(tmp_path):
    workspace = Workspace(str(tmp_path))
    with pytest.raises(NotFound):
        workspace.list("nope")


def test_list_rejects_traversal(tmp_path):
    workspace = Workspace(str(tmp_path))
    with pytest.raises(PathViolation):
        workspace.list("..")


def test_symlink_inside_workspace_is_followed(tmp_path):
    # Known gap: names are joined, not canonicalised.
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("outside", encoding="utf-8")
    root = tmp_path / "workspace"
    root.mkdir()
    os.symlink(outside, root / "link")
    workspace = Workspace(str(root))

    assert workspace.read("link/secret.txt") == "outside"


def test_edit_matches_old_text_with_double_spaces(tmp_path):
    (tmp_path / "f.md").write_text("keep a  b here", encoding="utf-8")
    workspace = Workspace(str(tmp_path))

    workspace.edit("f.md", "a  b", "c")

    assert (tmp_path / "f.md").read_text(encoding="utf-8") == "keep c here"


def test_edit_with_empty_old_text_prepends(tmp_path):
    (tmp_path / "f.md").write_text("body", encoding="utf-8")
    workspace = Workspace(str(tmp_path))

    assert workspace.edit("f.md", "", "title\n") == "title\nbody"


def test_failed_write_leaves_no_temp_file_and_keeps_neighbours(tmp_path, monkeypatch):
    (tmp_path / "foo.md").write_text("old", encoding="utf-8")
    (tmp_path / "foo.md.tmp").write_text("user data", encoding="utf-8")
    workspace = Workspace(str(tmp_path))

    def failing_replace(_src, _dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", failing_replace)

    with pytest.raises(OSError):
        workspace.write("foo.md", "new")

    assert sorted(path.name for path in tmp_path.iterdir()) == ["foo.md", "foo.md.tmp"]
    assert (tmp_path / "foo.md").read_text(encoding="utf-8") == "old"
    assert (tmp_path / "foo.md.tmp").read_text(encoding="utf-8") == "user data"


def test_write_keeps_existing_mode_and_defaults_new_files(tmp_path):
    script = tmp_path / "run.sh"
    script.write_text("echo hi", encoding="utf-8")
    script.chmod(0o755)
    workspace = Workspace(str(tmp_path))

    workspace.write("run.sh", "echo bye")
    workspace.write("new.md", "x")

    assert script.stat().st_mode & 0o777 == 0o755
    assert (tmp_path / "new.md").stat().st_mode & 0o777 == 0o644
