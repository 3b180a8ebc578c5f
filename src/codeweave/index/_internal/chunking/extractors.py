"""Import/export extraction by language-aware patterns.

Contract:
- every recognized import yields an ImportEntry with a non-empty source
- every recognized export yields an ExportEntry with a name and an ExportKind

Supported:
- javascript/typescript: ES module imports (named, default, namespace,
  side-effect), ``require()``; ``export default``, ``export <decl>``,
  ``export { a, b as c }``
- python: ``import x``, ``from x import y``; ``__all__`` entries
- java/csharp: ``import a.b.C;`` / ``using A.B;``; public class/interface
"""

from __future__ import annotations

import re

from codeweave.index.models import ExportEntry, ExportKind, ImportEntry

# ===================================================================
# JavaScript / TypeScript
# ===================================================================

_JS_IMPORT_FROM = re.compile(
    r"\bimport\s+(?:type\s+)?([\w$*{}\s,]+?)\s+from\s+['\"`]([^'\"`]+)['\"`]",
    re.DOTALL,
)
_JS_IMPORT_BARE = re.compile(r"^\s*import\s+['\"`]([^'\"`]+)['\"`]", re.MULTILINE)
_JS_REQUIRE = re.compile(r"\brequire\s*\(\s*['\"`]([^'\"`]+)['\"`]\s*\)")

_JS_EXPORT_DEFAULT = re.compile(
    r"\bexport\s+default\s+(?:async\s+)?(?:function\s*\*?\s*|class\s+|abstract\s+class\s+)?(\w+)"
)
_JS_EXPORT_DECL = re.compile(
    r"\bexport\s+(?:declare\s+)?(?:async\s+)?"
    r"(const|let|var|function\s*\*?|abstract\s+class|class|interface|type|enum)\s+(\w+)"
)
_JS_EXPORT_LIST = re.compile(r"\bexport\s*(?:type\s*)?\{([^}]*)\}")

_DECL_KINDS: dict[str, ExportKind] = {
    "function": ExportKind.FUNCTION,
    "class": ExportKind.CLASS,
    "interface": ExportKind.INTERFACE,
    "type": ExportKind.TYPE,
    "enum": ExportKind.TYPE,
}

# ===================================================================
# Python
# ===================================================================

_PY_FROM_IMPORT = re.compile(
    r"^[ \t]*from\s+([\w.]+)\s+import\s+(\([^)]*\)|[^\n#]+)",
    re.MULTILINE,
)
_PY_IMPORT = re.compile(r"^[ \t]*import[ \t]+([\w.]+(?:[ \t]*,[ \t]*[\w.]+|[ \t]+as[ \t]+\w+)*)", re.MULTILINE)
_PY_ALL = re.compile(r"__all__\s*=\s*[\[(](.*?)[\])]", re.DOTALL)
_QUOTED_NAME = re.compile(r"['\"](\w+)['\"]")

# ===================================================================
# Java / C#
# ===================================================================

_JAVA_IMPORT = re.compile(r"^\s*import\s+(?:static\s+)?([\w.]+(?:\.\*)?)\s*;", re.MULTILINE)
_CSHARP_USING = re.compile(r"^\s*using\s+(?:static\s+)?([\w.]+)\s*;", re.MULTILINE)
_JAVA_PUBLIC_TYPE = re.compile(
    r"\bpublic\s+(?:(?:abstract|final|static|sealed|partial)\s+)*(class|interface|enum|record)\s+(\w+)"
)


def _split_names(text: str) -> list[str]:
    names: list[str] = []
    for part in text.strip().strip("()").split(","):
        part = part.strip()
        if part:
            names.append(part)
    return names


def _alias_or_name(part: str) -> str:
    pieces = re.split(r"\s+as\s+", part.strip())
    return pieces[-1].strip()


def _js_imports(content: str) -> list[ImportEntry]:
    entries: list[ImportEntry] = []
    for m in _JS_IMPORT_FROM.finditer(content):
        clause, source = m.group(1), m.group(2)
        default_part, _, rest = clause.partition("{")
        named = rest.partition("}")[0]
        default_part = default_part.strip().rstrip(",").strip()

        items: list[str] = []
        is_default = False
        if default_part.startswith("*"):
            # namespace import: * as ns
            items.append(_alias_or_name(default_part))
        elif default_part:
            items.append(default_part)
            is_default = True
        items.extend(_alias_or_name(p) for p in _split_names(named))
        entries.append(ImportEntry(source=source, items=tuple(items), is_default=is_default))
    for m in _JS_IMPORT_BARE.finditer(content):
        entries.append(ImportEntry(source=m.group(1)))
    for m in _JS_REQUIRE.finditer(content):
        entries.append(ImportEntry(source=m.group(1), is_default=True))
    return entries


def _python_imports(content: str) -> list[ImportEntry]:
    entries: list[ImportEntry] = []
    for m in _PY_FROM_IMPORT.finditer(content):
        names = [_alias_or_name(p) for p in _split_names(m.group(2).replace("\n", " "))]
        entries.append(ImportEntry(source=m.group(1), items=tuple(n for n in names if n)))
    for m in _PY_IMPORT.finditer(content):
        for part in _split_names(m.group(1)):
            module = re.split(r"\s+as\s+", part)[0].strip()
            entries.append(ImportEntry(source=module, items=(_alias_or_name(part),), is_default=True))
    return entries


def _java_imports(content: str) -> list[ImportEntry]:
    return [
        ImportEntry(source=m.group(1), items=(m.group(1).rsplit(".", 1)[-1],))
        for m in _JAVA_IMPORT.finditer(content)
    ]


def _csharp_imports(content: str) -> list[ImportEntry]:
    return [ImportEntry(source=m.group(1)) for m in _CSHARP_USING.finditer(content)]


_IMPORT_EXTRACTORS = {
    "javascript": _js_imports,
    "typescript": _js_imports,
    "python": _python_imports,
    "java": _java_imports,
    "csharp": _csharp_imports,
}


def extract_imports(content: str, language: str) -> list[ImportEntry]:
    """Import statements recognized for ``language``, in source order per form."""
    extractor = _IMPORT_EXTRACTORS.get(language)
    if extractor is None:
        return []
    return [entry for entry in extractor(content) if entry.source]


def _js_exports(content: str) -> list[ExportEntry]:
    entries: list[ExportEntry] = []
    for m in _JS_EXPORT_DEFAULT.finditer(content):
        entries.append(ExportEntry(name=m.group(1), kind=ExportKind.DEFAULT))
    for m in _JS_EXPORT_DECL.finditer(content):
        keyword = m.group(1).split()[-1].rstrip("*")
        entries.append(ExportEntry(name=m.group(2), kind=_DECL_KINDS.get(keyword, ExportKind.VARIABLE)))
    for m in _JS_EXPORT_LIST.finditer(content):
        for part in _split_names(m.group(1)):
            name = _alias_or_name(part)
            if name and re.fullmatch(r"[\w$]+", name):
                kind = ExportKind.DEFAULT if name == "default" else ExportKind.NAMED
                entries.append(ExportEntry(name=name, kind=kind))
    return entries


def _python_exports(content: str) -> list[ExportEntry]:
    m = _PY_ALL.search(content)
    if not m:
        return []
    return [ExportEntry(name=n, kind=ExportKind.NAMED) for n in _QUOTED_NAME.findall(m.group(1))]


def _java_exports(content: str) -> list[ExportEntry]:
    entries: list[ExportEntry] = []
    for m in _JAVA_PUBLIC_TYPE.finditer(content):
        kind = ExportKind.INTERFACE if m.group(1) == "interface" else ExportKind.CLASS
        entries.append(ExportEntry(name=m.group(2), kind=kind))
    return entries


_EXPORT_EXTRACTORS = {
    "javascript": _js_exports,
    "typescript": _js_exports,
    "python": _python_exports,
    "java": _java_exports,
    "csharp": _java_exports,
}


def extract_exports(content: str, language: str) -> list[ExportEntry]:
    """Export statements recognized for ``language``."""
    extractor = _EXPORT_EXTRACTORS.get(language)
    if extractor is None:
        return []
    return [entry for entry in extractor(content) if entry.name]
