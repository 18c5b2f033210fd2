from __future__ import annotations

import io
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from slice_repo.config import FileEntry


def format_files_markdown(files: Sequence[FileEntry], root_label: str = "") -> str:
    """Render file entries as markdown sections, one fenced block per file.

    Args:
        files (Sequence[FileEntry]): the files to render, in read order
        root_label (str): optional label for a "# Context:" heading

    Returns:
        str: the markdown sections
    """
    out = io.StringIO()
    if root_label:
        out.write(f"# Context: {root_label}\n\n")
    for entry in files:
        out.write(f"## {entry.relative_path}\n\n")
        out.write(f"```{entry.language}\n")
        out.write(entry.content)
        if not entry.content.endswith("\n"):
            out.write("\n")
        out.write("```\n\n")
    return out.getvalue()


def build_markdown(roots: Sequence[Path], tree: str, files: Sequence[FileEntry]) -> str:
    """Build the markdown context document.

    The document opens with the project structure (the final tree, after every
    exclusion), followed by the content of each surviving file with a fence
    language derived from its category.

    Args:
        roots (Sequence[Path]): the root directories, used for the context label
        tree (str): the final rendered tree
        files (Sequence[FileEntry]): the files to include, in read order

    Returns:
        str: the markdown document
    """
    out = io.StringIO()
    out.write("# Project Structure\n\n")
    out.write("```text\n")
    out.write(tree.rstrip("\n"))
    out.write("\n```\n\n")
    out.write(format_files_markdown(files, ", ".join(r.name for r in roots)))
    return out.getvalue().rstrip() + "\n"
