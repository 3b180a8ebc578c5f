"""Heuristic class/function boundary detection.

A single forward pass over the lines of a file. Nothing is parsed: each
line is matched against per-language declaration patterns, and block
extents are found by counting braces (or, for Python, by indentation).

Nesting is tracked in an explicit ``ScannerState`` threaded through the
pass: a brace depth counter plus a stack of open class scopes. A class
scope is pushed when its header is detected and popped once the brace
depth returns to the depth recorded at entry (Python: once the scan moves
past the class's dedent). Functions detected while a class scope is open
are reported as methods of the innermost open class.

Detection is total: unrecognized or malformed syntax simply fails to
match, no input raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from codeweave.core.languages import is_indent_scoped, is_structured
from codeweave.index._internal.chunking.metadata import extract_symbols
from codeweave.index.models import Structure, StructureKind

# ===================================================================
# Declaration patterns
# ===================================================================

_MODIFIERS = r"(?:(?:export|default|declare|abstract|public|private|protected|internal|static|sealed|final|partial)\s+)*"

_CLASS_PATTERNS: dict[str, re.Pattern[str]] = {
    "javascript": re.compile(rf"^{_MODIFIERS}class\s+(\w+)"),
    "typescript": re.compile(rf"^{_MODIFIERS}class\s+(\w+)"),
    "python": re.compile(r"^class\s+(\w+)"),
    "java": re.compile(rf"^{_MODIFIERS}class\s+(\w+)"),
    "cpp": re.compile(r"^(?:template\s*<[^>]*>\s*)?class\s+(\w+)\b(?!\s*;)"),
    "csharp": re.compile(rf"^{_MODIFIERS}class\s+(\w+)"),
}

_JS_FUNCTION = re.compile(
    r"(?:function\s*\*?\s+(\w+)|(\w+)\s*[:=]\s*(?:async\b|function\b|\())"
)
_FUNCTION_PATTERNS: dict[str, re.Pattern[str]] = {
    "javascript": _JS_FUNCTION,
    "typescript": _JS_FUNCTION,
    "python": re.compile(r"^(?:async\s+)?def\s+(\w+)"),
    "java": re.compile(
        r"^(?:(?:public|private|protected|static|final|abstract|synchronized|native)\s+)*"
        r"(?:<[^>]+>\s+)?([\w<>\[\],.?]+)\s+(\w+)\s*\("
    ),
    "cpp": re.compile(r"^(?:[\w:<>*&~]+\s+)?([\w:~]+)\s*\([^)]*\)\s*(?:const\s*)?(?:override\s*)?\{"),
    "csharp": re.compile(
        r"^(?:(?:public|private|protected|internal|static|virtual|override|async|sealed|abstract)\s+)*"
        r"([\w<>\[\],.?]+)\s+(\w+)\s*\("
    ),
}

# Method shorthand (``bar(x) {``) is only a declaration inside a class body
_JS_METHOD = re.compile(
    r"^(?:(?:public|private|protected|static|async|readonly|override|get|set)\s+)*\*?"
    r"(\w+)\s*(?:<[^>]*>)?\s*\([^)]*\)\s*(?::\s*[^{]+)?\{"
)

_COMMENT_PREFIXES = ("//", "#", "/*", "*")

_NOT_A_NAME = frozenset(
    {
        "if",
        "else",
        "for",
        "while",
        "do",
        "switch",
        "case",
        "catch",
        "try",
        "finally",
        "return",
        "new",
        "throw",
        "await",
        "yield",
        "typeof",
        "sizeof",
        "delete",
        "using",
        "lock",
        "foreach",
        "function",
    }
)

_OPENERS = "([{"
_CLOSERS = ")]}"


# ===================================================================
# Scanner state
# ===================================================================


@dataclass(slots=True)
class OpenClass:
    """A class scope the scanner is currently inside."""

    name: str
    start_line: int
    end_index: int
    entry_depth: int
    opened: bool = False


@dataclass(slots=True)
class ScannerState:
    """Nesting state threaded through one detection pass."""

    depth: int = 0
    classes: list[OpenClass] = field(default_factory=list)

    @property
    def current_class(self) -> OpenClass | None:
        return self.classes[-1] if self.classes else None

    def push_class(self, scope: OpenClass) -> None:
        self.classes.append(scope)

    def consume_braces(self, line: str) -> None:
        """Apply a line's braces to the depth and pop classes whose body closed."""
        for char in line:
            if char == "{":
                self.depth += 1
                for scope in self.classes:
                    if self.depth > scope.entry_depth:
                        scope.opened = True
            elif char == "}":
                self.depth -= 1
                while self.classes and self.classes[-1].opened and self.depth <= self.classes[-1].entry_depth:
                    self.classes.pop()

    def pop_finished(self, index: int) -> None:
        """Pop classes whose detected extent ends before ``index``."""
        while self.classes and index > self.classes[-1].end_index:
            self.classes.pop()


# ===================================================================
# Block extents
# ===================================================================


def find_block_end(lines: list[str], start: int) -> int:
    """0-based index of the line closing the brace block opened at ``start``.

    Counts braces from the header line. The block ends on the line where
    the count returns to zero after the first ``{``. A header that ends in
    ``;`` or meets a ``}`` before any ``{`` is a declaration without body
    and ends where it stands. With no closing brace the block extends to
    end of file.
    """
    count = 0
    opened = False
    for i in range(start, len(lines)):
        line = lines[i]
        for char in line:
            if char == "{":
                count += 1
                opened = True
            elif char == "}":
                if not opened:
                    if i == start:
                        continue
                    return i - 1
                count -= 1
                if count == 0:
                    return i
        if not opened and line.rstrip().endswith(";"):
            return i
    return len(lines) - 1


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _header_end(lines: list[str], start: int) -> int:
    """Last line of a Python header whose brackets may span several lines."""
    balance = 0
    for i in range(start, len(lines)):
        code = lines[i].split("#", 1)[0]
        for char in code:
            if char in _OPENERS:
                balance += 1
            elif char in _CLOSERS:
                balance -= 1
        if balance <= 0:
            return i if code.rstrip().endswith(":") else start
    return start


def find_indent_block_end(lines: list[str], start: int) -> int:
    """0-based index of the last line of the indented block headed at ``start``.

    The block is every following line indented deeper than the header,
    ignoring blank lines; it ends on the last non-blank line before the
    first dedent (or at the last non-blank line of the file).
    """
    header_indent = _indent(lines[start])
    end = _header_end(lines, start)
    for i in range(end + 1, len(lines)):
        line = lines[i]
        if not line.strip():
            continue
        if _indent(line) <= header_indent:
            break
        end = i
    return end


# ===================================================================
# Detection
# ===================================================================


def detect_class(line: str, language: str) -> str | None:
    pattern = _CLASS_PATTERNS.get(language)
    if pattern is None:
        return None
    m = pattern.match(line)
    return m.group(1) if m else None


def detect_function(line: str, language: str, *, in_class: bool = False) -> str | None:
    """Name declared on a (stripped) line, or None."""
    if language in ("javascript", "typescript"):
        m = _JS_FUNCTION.search(line)
        if m:
            name = m.group(1) or m.group(2)
        elif in_class and (mm := _JS_METHOD.match(line)):
            name = mm.group(1)
        else:
            return None
        return None if name in _NOT_A_NAME else name

    pattern = _FUNCTION_PATTERNS.get(language)
    if pattern is None:
        return None
    m = pattern.match(line)
    if not m:
        return None
    if language in ("java", "csharp"):
        return_type, name = m.group(1), m.group(2)
        if return_type in _NOT_A_NAME or name in _NOT_A_NAME:
            return None
        return name
    name = m.group(1)
    return None if name in _NOT_A_NAME else name


class StructureDetector:
    """Finds class, function and method spans in one file's lines."""

    def detect(self, lines: list[str], language: str) -> list[Structure]:
        if not is_structured(language):
            return []

        indent_scoped = is_indent_scoped(language)
        state = ScannerState()
        structures: list[Structure] = []

        for i, raw in enumerate(lines):
            state.pop_finished(i)
            line = raw.strip()

            if line and not line.startswith(_COMMENT_PREFIXES):
                structure = self._detect_line(lines, i, line, language, state, indent_scoped)
                if structure is not None:
                    structures.append(structure)

            if not indent_scoped:
                state.consume_braces(raw)

        return structures

    def _detect_line(
        self,
        lines: list[str],
        i: int,
        line: str,
        language: str,
        state: ScannerState,
        indent_scoped: bool,
    ) -> Structure | None:
        enclosing = state.current_class

        class_name = detect_class(line, language)
        if class_name is not None:
            end = self._block_end(lines, i, indent_scoped)
            state.push_class(
                OpenClass(
                    name=class_name,
                    start_line=i + 1,
                    end_index=end,
                    entry_depth=state.depth,
                )
            )
            return self._structure(StructureKind.CLASS, class_name, lines, i, end, language, enclosing)

        func_name = detect_function(line, language, in_class=enclosing is not None)
        if func_name is None:
            return None
        end = self._block_end(lines, i, indent_scoped)
        kind = StructureKind.METHOD if enclosing is not None else StructureKind.FUNCTION
        return self._structure(kind, func_name, lines, i, end, language, enclosing)

    @staticmethod
    def _block_end(lines: list[str], i: int, indent_scoped: bool) -> int:
        return find_indent_block_end(lines, i) if indent_scoped else find_block_end(lines, i)

    @staticmethod
    def _structure(
        kind: StructureKind,
        name: str,
        lines: list[str],
        start: int,
        end: int,
        language: str,
        enclosing: OpenClass | None,
    ) -> Structure:
        content = "\n".join(lines[start : end + 1])
        return Structure(
            kind=kind,
            name=name,
            start_line=start + 1,
            end_line=end + 1,
            content=content,
            symbols=tuple(extract_symbols(content, language)),
            parent_name=enclosing.name if enclosing else None,
            parent_start=enclosing.start_line if enclosing else None,
        )
