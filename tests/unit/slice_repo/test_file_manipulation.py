from pathlib import Path

import pytest

from slice_repo.config import FileCategory, SkipReason, SkipRecord
from slice_repo.exceptions import PathNotADirectoryError, PathNotFoundError
from slice_repo.file_manipulation import read_files, relpath, validate_paths


def _write(path: Path, content: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.unit
def test_relpath_inside_and_outside_root(tmp_path: Path) -> None:
    assert relpath(tmp_path / "src" / "a.py", tmp_path) == "src/a.py"
    outside = Path("/elsewhere/file.txt")
    assert relpath(outside, tmp_path) == str(outside)


@pytest.mark.unit
def test_validate_paths_resolves_in_order(tmp_path: Path) -> None:
    first = tmp_path / "b"
    second = tmp_path / "a"
    first.mkdir()
    second.mkdir()

    validated = validate_paths([str(first), second / ".." / "a"])

    assert validated == [first.resolve(), second.resolve()]
    assert all(p.is_absolute() for p in validated)


@pytest.mark.unit
def test_validate_paths_missing_path(tmp_path: Path) -> None:
    missing = tmp_path / "nope"

    with pytest.raises(PathNotFoundError) as exc_info:
        validate_paths([tmp_path, missing])

    assert "Path does not exist" in str(exc_info.value)
    assert str(missing) in str(exc_info.value)


@pytest.mark.unit
def test_validate_paths_file_is_not_a_directory(tmp_path: Path) -> None:
    file_path = _write(tmp_path / "file.txt")

    with pytest.raises(PathNotADirectoryError) as exc_info:
        validate_paths([file_path])

    assert "not a directory" in str(exc_info.value)


@pytest.mark.unit
def test_read_files_records_every_skip(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "index.ts", "export const a = 1;\n")
    _write(tmp_path / "node_modules" / "pkg" / "index.js", "module.exports = 1;\n")
    _write(tmp_path / "dist" / "app.js", "console.log(1);\n")
    _write(tmp_path / "app.test.ts", "it('works', () => {});\n")

    result = read_files([tmp_path], patterns=["dist"])

    assert [f.relative_path for f in result.files] == ["src/index.ts"]
    assert result.skipped == [
        SkipRecord(path="dist", reason=SkipReason.AI_EXCLUDED),
        SkipRecord(path="node_modules", reason=SkipReason.PRE_FILTERED),
        SkipRecord(path="app.test.ts", reason=SkipReason.PRE_FILTERED),
    ]


@pytest.mark.unit
def test_read_files_allows_test_artifacts(tmp_path: Path) -> None:
    _write(tmp_path / "app.test.ts", "it('works', () => {});\n")
    _write(tmp_path / "__tests__" / "b.ts", "x\n")

    result = read_files([tmp_path], allow_test_artifacts=True)

    assert sorted(f.relative_path for f in result.files) == ["__tests__/b.ts", "app.test.ts"]
    assert result.skipped == []


@pytest.mark.unit
def test_read_files_size_and_decode_failures(tmp_path: Path) -> None:
    _write(tmp_path / "big.txt", "x" * 100)
    (tmp_path / "blob.txt").write_bytes(b"\xff\xfe\x00\x81")
    _write(tmp_path / "ok.txt", "ok\n")

    result = read_files([tmp_path], max_file_size=10)

    assert [f.relative_path for f in result.files] == ["ok.txt"]
    assert result.skipped == [
        SkipRecord(path="big.txt", reason=SkipReason.SIZE_EXCEEDED),
        SkipRecord(path="blob.txt", reason=SkipReason.READ_ERROR),
    ]


@pytest.mark.unit
def test_read_files_respects_max_depth(tmp_path: Path) -> None:
    _write(tmp_path / "top.txt")
    _write(tmp_path / "a" / "mid.txt")
    _write(tmp_path / "a" / "b" / "deep.txt")

    result = read_files([tmp_path], max_depth=2)

    assert [f.relative_path for f in result.files] == ["top.txt", "a/mid.txt"]


@pytest.mark.unit
def test_read_files_glob_patterns_and_categories(tmp_path: Path) -> None:
    _write(tmp_path / "main.py", "print('hi')\n")
    _write(tmp_path / "notes.md", "# notes\n")
    _write(tmp_path / "data.csv", "a,b\n")

    result = read_files([tmp_path], patterns=["*.csv"])

    categories = {f.relative_path: f.category for f in result.files}
    assert categories == {"main.py": FileCategory.PYTHON, "notes.md": FileCategory.MARKDOWN}
    assert result.skipped == [SkipRecord(path="data.csv", reason=SkipReason.AI_EXCLUDED)]
    assert result.total_files == 2
    assert result.total_size == len("print('hi')\n") + len("# notes\n")


@pytest.mark.unit
def test_read_files_extra_exclude_dirs(tmp_path: Path) -> None:
    _write(tmp_path / "Generated" / "out.ts")
    _write(tmp_path / "src" / "in.ts")

    result = read_files([tmp_path], extra_exclude_dirs=["generated"])

    assert [f.relative_path for f in result.files] == ["src/in.ts"]
    assert result.skipped == [SkipRecord(path="Generated", reason=SkipReason.PRE_FILTERED)]


@pytest.mark.unit
def test_read_files_multiple_roots_are_relative_to_their_root(tmp_path: Path) -> None:
    api = tmp_path / "api"
    web = tmp_path / "web"
    _write(api / "server.py")
    _write(web / "client.ts")

    result = read_files([api, web])

    assert [f.relative_path for f in result.files] == ["server.py", "client.ts"]
    assert result.files[0].absolute_path == api / "server.py"
