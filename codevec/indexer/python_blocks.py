"""
Reference code indexer for Python sources.

Splits every ``*.py`` file under a directory into CodeBlocks with the
built-in ``ast`` module:

* one ``class`` block per class definition,
* one ``function`` block per function or method (methods carry ``class_name``),
* one ``statement`` block per remaining top-level statement (imports excluded).

``outgoing_calls`` holds the names of everything the block calls, in order of
first occurrence.
"""

from __future__ import annotations

import ast
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from codevec.core.config import INDEXER_EXCLUDED_DIRS
from codevec.core.errors import IndexingError
from codevec.core.schema import CodeBlock
from codevec.util.logging import logger

BLOCK_FUNCTION = "function"
BLOCK_CLASS = "class"
BLOCK_STATEMENT = "statement"

_FUNCTION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)
_SKIPPED_STATEMENTS = (ast.Import, ast.ImportFrom)


def _call_name(node: ast.Call) -> Optional[str]:
    func = node.func
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return None


def outgoing_calls(node: ast.AST) -> List[str]:
    """Names called anywhere inside ``node``, deduplicated, in source order."""
    # ast.walk is breadth-first, so order by position afterwards
    located = []
    for child in ast.walk(node):
        if isinstance(child, ast.Call):
            name = _call_name(child)
            if name:
                located.append(((child.lineno, child.col_offset), name))

    calls = []
    for _, name in sorted(located):
        if name not in calls:
            calls.append(name)
    return calls


class PythonBlockExtractor:
    """Extracts CodeBlocks from one Python module's source."""

    def __init__(self, source: str, relative_path: str):
        self.source = source
        self.relative_path = relative_path

    def _segment(self, node: ast.AST) -> str:
        segment = ast.get_source_segment(self.source, node, padded=False)
        if segment is None:
            segment = ast.unparse(node)
        # Decorators belong to the definition they wrap
        decorators = getattr(node, "decorator_list", None)
        if decorators:
            lines = self.source.splitlines()
            start = min(decorator.lineno for decorator in decorators) - 1
            segment = "\n".join(lines[start:node.end_lineno])
        return segment

    def _function_block(self, node, class_name: Optional[str]) -> CodeBlock:
        qualified = f"{class_name}.{node.name}" if class_name else node.name
        return CodeBlock(
            node_key=f"{self.relative_path}::{qualified}",
            block_type=BLOCK_FUNCTION,
            content=self._segment(node),
            class_name=class_name,
            function_name=node.name,
            outgoing_calls=tuple(outgoing_calls(node)),
        )

    def extract(self) -> List[CodeBlock]:
        """Parse the source; raises SyntaxError if it is not valid Python."""
        tree = ast.parse(self.source, filename=self.relative_path)
        blocks: List[CodeBlock] = []

        for node in tree.body:
            if isinstance(node, _FUNCTION_NODES):
                blocks.append(self._function_block(node, None))
            elif isinstance(node, ast.ClassDef):
                blocks.append(CodeBlock(
                    node_key=f"{self.relative_path}::{node.name}",
                    block_type=BLOCK_CLASS,
                    content=self._segment(node),
                    class_name=node.name,
                    function_name=None,
                    outgoing_calls=tuple(outgoing_calls(node)),
                ))
                for item in node.body:
                    if isinstance(item, _FUNCTION_NODES):
                        blocks.append(self._function_block(item, node.name))
            elif not isinstance(node, _SKIPPED_STATEMENTS):
                blocks.append(CodeBlock(
                    node_key=f"{self.relative_path}:{node.lineno}",
                    block_type=BLOCK_STATEMENT,
                    content=self._segment(node),
                    class_name=None,
                    function_name=None,
                    outgoing_calls=tuple(outgoing_calls(node)),
                ))

        return blocks


def iter_python_files(root: Path, excluded_dirs: Iterable[str] = None) -> Iterator[Path]:
    """Yield ``*.py`` files under ``root`` in a stable order, skipping excluded directories."""
    excluded = set(INDEXER_EXCLUDED_DIRS if excluded_dirs is None else excluded_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded and not d.startswith("."))
        for filename in sorted(filenames):
            if filename.endswith(".py"):
                yield Path(dirpath) / filename


def index_directory(project_path: str, excluded_dirs: Iterable[str] = None) -> List[CodeBlock]:
    """Index every Python file under ``project_path``.

    Files that cannot be read, decoded or parsed are skipped with a warning.
    """
    root = Path(project_path)
    if not root.exists():
        raise IndexingError(project_path, "path does not exist")
    if not root.is_dir():
        raise IndexingError(project_path, "path is not a directory")

    blocks: List[CodeBlock] = []
    file_count = 0
    skipped = 0

    for path in iter_python_files(root, excluded_dirs):
        relative_path = path.relative_to(root).as_posix()
        try:
            source = path.read_text(encoding="utf-8")
            blocks.extend(PythonBlockExtractor(source, relative_path).extract())
            file_count += 1
        except (OSError, SyntaxError, UnicodeDecodeError, ValueError) as e:
            skipped += 1
            logger.warning(f"Skipping {relative_path}: {e}")

    logger.log_operation("indexer.directory", "success", {
        "path": project_path,
        "files": file_count,
        "skipped": skipped,
        "blocks": len(blocks),
    })
    return blocks
