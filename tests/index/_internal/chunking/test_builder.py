"""Tests for hierarchical chunk construction."""

from __future__ import annotations

import re

from codeweave.config.constants import ELLIPSIS_MARKER
from codeweave.config.models import ChunkingConfig
from codeweave.index._internal.chunking import ChunkBuilder, file_chunk_id, stable_id
from codeweave.index.models import Chunk, ChunkLevel
from fakes import FOO_BAR_TS

PY_CLASS = """\
class Greeter:
    def __init__(self, name):
        self.name = name

    def greet(self):
        return f"hi {self.name}"

def main():
    Greeter("x").greet()
"""


def _declared_name(chunk: Chunk) -> str:
    m = re.search(r"(?:class|def)\s+(\w+)", chunk.content.split("\n")[0])
    assert m is not None
    return m.group(1)


def _big_python_function() -> str:
    body = [f"    value_{i} = combine(value_{i - 1}, {i})  # keep going" for i in range(1, 60)]
    return "\n".join(["def big(value_0):", *body, "    return v"])


class TestClassWithMethod:
    """One class ``Foo`` with one method ``bar`` in a 15-line file."""

    def test_exactly_one_class_and_one_function(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("src/foo.ts", FOO_BAR_TS, "typescript")

        classes = [c for c in chunks if c.level is ChunkLevel.CLASS]
        functions = [c for c in chunks if c.level is ChunkLevel.FUNCTION]
        assert len(classes) == 1
        assert len(functions) == 1
        assert (classes[0].metadata.start_line, classes[0].metadata.end_line) == (1, 12)
        assert (functions[0].metadata.start_line, functions[0].metadata.end_line) == (3, 10)

    def test_method_is_parented_to_class(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("src/foo.ts", FOO_BAR_TS, "typescript")
        cls = next(c for c in chunks if c.level is ChunkLevel.CLASS)
        method = next(c for c in chunks if c.level is ChunkLevel.FUNCTION)

        assert method.parent_id == cls.id
        assert cls.child_ids == [method.id]

    def test_file_chunk_is_root(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("src/foo.ts", FOO_BAR_TS, "typescript")
        root = chunks[0]
        cls = next(c for c in chunks if c.level is ChunkLevel.CLASS)

        assert root.level is ChunkLevel.FILE
        assert root.id == file_chunk_id("src/foo.ts")
        assert root.parent_id is None
        assert root.child_ids == [cls.id]
        assert (root.metadata.start_line, root.metadata.end_line) == (1, 15)
        assert cls.parent_id == root.id

    def test_class_content_spans_its_lines(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("src/foo.ts", FOO_BAR_TS, "typescript")
        cls = next(c for c in chunks if c.level is ChunkLevel.CLASS)
        assert cls.content.startswith("class Foo {")
        assert cls.content.endswith("}")
        assert cls.content.count("\n") == 11


class TestPythonStructures:
    def test_methods_and_top_level_function(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("pkg/greeter.py", PY_CLASS, "python")
        by_name = {_declared_name(c): c for c in chunks[1:]}

        cls = by_name["Greeter"]
        init = by_name["__init__"]
        greet = by_name["greet"]
        main = by_name["main"]

        assert (cls.metadata.start_line, cls.metadata.end_line) == (1, 6)
        assert (init.metadata.start_line, init.metadata.end_line) == (2, 3)
        assert (greet.metadata.start_line, greet.metadata.end_line) == (5, 6)
        assert init.parent_id == cls.id
        assert greet.parent_id == cls.id
        assert main.parent_id == chunks[0].id
        assert cls.child_ids == [init.id, greet.id]


class TestBlockPartitioning:
    def test_oversized_function_is_split_into_windows(self, builder: ChunkBuilder) -> None:
        content = _big_python_function()
        chunks = builder.build("pkg/big.py", content, "python")
        function = next(c for c in chunks if c.level is ChunkLevel.FUNCTION)
        blocks = [c for c in chunks if c.level is ChunkLevel.BLOCK]

        assert len(function.content) > 1000
        # 61 lines -> windows of 20; the 1-line tail "return v" is under 50 chars and dropped
        assert [(b.metadata.start_line, b.metadata.end_line) for b in blocks] == [(1, 20), (21, 40), (41, 60)]
        assert all(b.parent_id == function.id for b in blocks)
        assert function.child_ids == [b.id for b in blocks]

    def test_small_function_has_no_blocks(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("pkg/greeter.py", PY_CLASS, "python")
        assert not [c for c in chunks if c.level is ChunkLevel.BLOCK]

    def test_block_lines_are_offset_from_function_start(self) -> None:
        content = "\n\n\n" + _big_python_function()
        chunks = ChunkBuilder(ChunkingConfig()).build("pkg/big.py", content, "python")
        blocks = [c for c in chunks if c.level is ChunkLevel.BLOCK]
        assert blocks[0].metadata.start_line == 4
        assert blocks[1].metadata.start_line == 24

    def test_window_size_is_configurable(self) -> None:
        builder = ChunkBuilder(ChunkingConfig(block_lines=30))
        chunks = builder.build("pkg/big.py", _big_python_function(), "python")
        blocks = [c for c in chunks if c.level is ChunkLevel.BLOCK]
        assert [(b.metadata.start_line, b.metadata.end_line) for b in blocks] == [(1, 30), (31, 60)]


class TestFileChunk:
    def test_long_file_preview_is_truncated_with_marker(self, builder: ChunkBuilder) -> None:
        content = _big_python_function()
        root = builder.build("pkg/big.py", content, "python")[0]
        assert len(content) > 2000
        assert root.content == content[:2000] + ELLIPSIS_MARKER

    def test_unstructured_language_yields_only_file_chunk(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("main.go", "package main\n\nfunc main() {\n}\n", "go")
        assert len(chunks) == 1
        assert chunks[0].level is ChunkLevel.FILE

    def test_empty_file(self, builder: ChunkBuilder) -> None:
        chunks = builder.build("empty.ts", "", "typescript")
        assert len(chunks) == 1
        assert (chunks[0].metadata.start_line, chunks[0].metadata.end_line) == (1, 1)


class TestIdStability:
    def test_rebuild_reproduces_ids_in_order(self, builder: ChunkBuilder) -> None:
        first = [c.id for c in builder.build("src/foo.ts", FOO_BAR_TS, "typescript")]
        second = [c.id for c in builder.build("src/foo.ts", FOO_BAR_TS, "typescript")]
        assert first == second

    def test_ids_depend_on_path(self, builder: ChunkBuilder) -> None:
        a = {c.id for c in builder.build("a.ts", FOO_BAR_TS, "typescript")}
        b = {c.id for c in builder.build("b.ts", FOO_BAR_TS, "typescript")}
        assert not a & b

    def test_ids_are_unique_within_file(self, builder: ChunkBuilder) -> None:
        ids = [c.id for c in builder.build("pkg/big.py", _big_python_function(), "python")]
        assert len(ids) == len(set(ids))

    def test_stable_id_is_short_hex(self) -> None:
        value = stable_id("a", 1)
        assert len(value) == 16
        int(value, 16)
        assert stable_id("a", 1) != stable_id("a1")
