import json
from pathlib import Path

import pytest

from slice_repo import cli


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "src").mkdir(parents=True)
    (root / "dist").mkdir()
    (root / "src" / "app.py").write_text("# entry point\nimport sys\n\n\n\nprint(sys.argv)\n", encoding="utf-8")
    (root / "dist" / "bundle.js").write_text("built();\n", encoding="utf-8")
    return root


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.mark.end2end
def test_end_to_end_markdown_to_file(repo: Path, cache_dir: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    output = tmp_path / "out" / "context.md"

    exit_code = cli.main(
        [str(repo), "--exclude", "dist", "--output", str(output), "--no-cache", "--log-file", str(tmp_path / "log.jsonl")],
    )

    assert exit_code == 0
    content = output.read_text(encoding="utf-8")
    assert content.startswith("# Project Structure\n")
    assert "## src/app.py" in content
    assert "print(sys.argv)" in content
    assert "# entry point" not in content
    assert "bundle.js" not in content
    assert f"Wrote {output}" in capsys.readouterr().out
    assert not cache_dir.exists()


@pytest.mark.end2end
def test_end_to_end_stdout_without_compression(repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main([str(repo), "--no-compress", "--no-cache"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "# entry point" in out
    assert "built();" in out


@pytest.mark.end2end
def test_end_to_end_cache_round_trip(repo: Path, cache_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    args = [str(repo), "--config", str(_config(repo.parent, cache_dir))]

    assert cli.main([*args, "--cache-only"]) == 1
    assert "no cached context" in capsys.readouterr().err

    assert cli.main(args) == 0
    first = capsys.readouterr().out
    assert cli.main([*args, "--cache-only"]) == 0
    assert capsys.readouterr().out == first

    assert cli.main(["cache", "stats", "--cache-dir", str(cache_dir), "--namespace", "context"]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["total_entries"] == 1

    assert cli.main(["cache", "clear", "--cache-dir", str(cache_dir)]) == 0
    assert "Removed 1 cache entries" in capsys.readouterr().out


@pytest.mark.end2end
def test_end_to_end_cache_clear_rejects_wildcard_namespace(
    repo: Path, cache_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main([str(repo), "--config", str(_config(repo.parent, cache_dir))]) == 0
    capsys.readouterr()

    assert cli.main(["cache", "clear", "--cache-dir", str(cache_dir), "--namespace", "*"]) == 2
    assert "Invalid cache namespace" in capsys.readouterr().err
    assert cli.main(["cache", "stats", "--cache-dir", str(cache_dir)]) == 0
    assert json.loads(capsys.readouterr().out)["total_entries"] == 1


@pytest.mark.end2end
def test_end_to_end_cache_rejects_malformed_environment(
    cache_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("SLICE_REPO_CACHE_TTL_DAYS", "abc")

    assert cli.main(["cache", "stats", "--cache-dir", str(cache_dir)]) == 2
    assert "invalid option values" in capsys.readouterr().err


@pytest.mark.end2end
def test_end_to_end_paths_from_config(repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = tmp_path / "slice.yaml"
    config.write_text("context: [repo]\nexclude: [dist]\ncache: false\n", encoding="utf-8")

    assert cli.main(["--config", str(config)]) == 0
    out = capsys.readouterr().out
    assert "## src/app.py" in out
    assert "bundle.js" not in out


@pytest.mark.end2end
def test_end_to_end_missing_path(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    missing = tmp_path / "missing"

    assert cli.main([str(missing), "--no-cache"]) == 1
    assert "Path does not exist" in capsys.readouterr().err


@pytest.mark.end2end
def test_end_to_end_no_paths(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--no-cache"]) == 2
    assert "no paths given" in capsys.readouterr().err


@pytest.mark.end2end
def test_end_to_end_rejects_negative_depth(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main([str(tmp_path), "--max-depth", "-1", "--no-cache"]) == 2
    assert "invalid option values" in capsys.readouterr().err


@pytest.mark.end2end
def test_end_to_end_bad_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = tmp_path / "bad.yaml"
    config.write_text("max_depth: deep\n", encoding="utf-8")

    assert cli.main([str(tmp_path), "--config", str(config)]) == 1
    assert "Invalid config file" in capsys.readouterr().err


def _config(directory: Path, cache_dir: Path) -> Path:
    config = directory / "slice.yaml"
    config.write_text(f"cache_dir: {cache_dir}\nexclude: [dist]\n", encoding="utf-8")
    return config
