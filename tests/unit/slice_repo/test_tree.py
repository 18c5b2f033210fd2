from pathlib import Path

import pytest

from slice_repo.file_manipulation import read_files
from slice_repo.tree import directory_size, render_tree


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "src" / "main.py").write_text("print('hi')\n", encoding="utf-8")
    (root / "README.md").write_text("# proj\n", encoding="utf-8")
    (root / "node_modules" / "pkg" / "index.js").write_text("module.exports = 1;\n", encoding="utf-8")
    return root


@pytest.mark.unit
def test_render_tree_directories_first_without_junk(project: Path) -> None:
    tree = render_tree([project])

    assert tree == "proj/\n├── src\n│   └── main.py\n└── README.md\n"


@pytest.mark.unit
def test_render_tree_is_deterministic(project: Path) -> None:
    assert render_tree([project]) == render_tree([project])


@pytest.mark.unit
def test_render_tree_hides_pattern_matches(project: Path) -> None:
    assert render_tree([project], patterns=["src"]) == "proj/\n└── README.md\n"
    assert render_tree([project], patterns=["*.py"]) == "proj/\n├── src\n└── README.md\n"


@pytest.mark.unit
def test_render_tree_depth_limit(project: Path) -> None:
    assert render_tree([project], max_depth=1) == "proj/\n├── src\n└── README.md\n"
    assert render_tree([project], max_depth=0) == "proj/\n"


@pytest.mark.unit
def test_render_tree_truncates_at_item_cap(project: Path) -> None:
    tree = render_tree([project], max_items=2)

    assert tree == "proj/\n├── src\n│   └── main.py\n... (truncated at 2 items)"


@pytest.mark.unit
def test_render_tree_sorts_names_case_insensitively(tmp_path: Path) -> None:
    for name in ("b.txt", "C.txt", "a.txt"):
        (tmp_path / name).write_text("x", encoding="utf-8")

    lines = render_tree([tmp_path]).splitlines()

    assert lines[1:] == ["├── a.txt", "├── b.txt", "└── C.txt"]


@pytest.mark.unit
def test_render_tree_sort_by_size(tmp_path: Path) -> None:
    (tmp_path / "small.txt").write_text("x", encoding="utf-8")
    (tmp_path / "big.txt").write_text("x" * 100, encoding="utf-8")
    (tmp_path / "mid").mkdir()
    (tmp_path / "mid" / "f.txt").write_text("x" * 50, encoding="utf-8")

    lines = render_tree([tmp_path], sort_by_size=True).splitlines()

    assert lines[1:] == ["├── big.txt", "├── mid", "│   └── f.txt", "└── small.txt"]


@pytest.mark.unit
def test_render_tree_multiple_roots(tmp_path: Path) -> None:
    api = tmp_path / "api"
    web = tmp_path / "web"
    api.mkdir()
    web.mkdir()
    (api / "server.py").write_text("x", encoding="utf-8")
    (web / "client.ts").write_text("x", encoding="utf-8")

    tree = render_tree([api, web])

    assert tree == "api/\n└── server.py\n\nweb/\n└── client.ts\n"


@pytest.mark.unit
def test_directory_size_sums_nested_files(tmp_path: Path) -> None:
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "one.txt").write_text("x" * 3, encoding="utf-8")
    (tmp_path / "two.txt").write_text("x" * 4, encoding="utf-8")

    assert directory_size(tmp_path) == 7


@pytest.mark.unit
def test_render_tree_does_not_descend_into_symlinked_directories(tmp_path: Path) -> None:
    (tmp_path / "real").mkdir()
    (tmp_path / "real" / "inner.txt").write_text("x", encoding="utf-8")
    (tmp_path / "alias").symlink_to(tmp_path / "real", target_is_directory=True)

    lines = render_tree([tmp_path]).splitlines()

    assert lines[1:] == ["├── real", "│   └── inner.txt", "└── alias"]
    assert [f.relative_path for f in read_files([tmp_path]).files] == ["real/inner.txt"]
