"""Symbol/concept inverted index and chunk relationships.

Relationships are derived per indexing run and reported in stats:
- calls (0.8): a chunk calls a symbol another chunk defines
- imports (0.6): a chunk's dependency names an indexed symbol
- similar (Jaccard concept overlap): top 5 candidates above 0.2, kept above 0.5
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable

from codeweave.index.models import Chunk, Relationship, RelationshipKind

CALLS_STRENGTH = 0.8
IMPORTS_STRENGTH = 0.6
SIMILAR_MIN = 0.5
SIMILAR_CANDIDATE_MIN = 0.2
SIMILAR_TOP_N = 5

_CALL = re.compile(r"(\w+)\(")


def find_function_calls(content: str) -> list[str]:
    seen: dict[str, None] = {}
    for name in _CALL.findall(content):
        seen.setdefault(name, None)
    return list(seen)


class SymbolConceptIndex:
    """symbol → chunk ids and concept → chunk ids, in insertion order."""

    def __init__(self) -> None:
        self._symbols: dict[str, list[str]] = defaultdict(list)
        self._concepts: dict[str, list[str]] = defaultdict(list)
        self._chunk_concepts: dict[str, frozenset[str]] = {}

    def add(self, chunks: Iterable[Chunk]) -> None:
        for chunk in chunks:
            for symbol in chunk.metadata.symbols:
                ids = self._symbols[symbol]
                if chunk.id not in ids:
                    ids.append(chunk.id)
            for concept in chunk.metadata.concepts:
                ids = self._concepts[concept]
                if chunk.id not in ids:
                    ids.append(chunk.id)
            self._chunk_concepts[chunk.id] = frozenset(chunk.metadata.concepts)

    def remove(self, chunk_ids: Iterable[str]) -> None:
        doomed = set(chunk_ids)
        for table in (self._symbols, self._concepts):
            for key in list(table):
                kept = [cid for cid in table[key] if cid not in doomed]
                if kept:
                    table[key] = kept
                else:
                    del table[key]
        for cid in doomed:
            self._chunk_concepts.pop(cid, None)

    def clear(self) -> None:
        self._symbols.clear()
        self._concepts.clear()
        self._chunk_concepts.clear()

    def chunks_for_symbol(self, symbol: str) -> list[str]:
        return list(self._symbols.get(symbol, ()))

    def chunks_for_concept(self, concept: str) -> list[str]:
        return list(self._concepts.get(concept, ()))

    def concepts_of(self, chunk_id: str) -> frozenset[str]:
        return self._chunk_concepts.get(chunk_id, frozenset())

    @property
    def symbol_count(self) -> int:
        return len(self._symbols)

    @property
    def concept_count(self) -> int:
        return len(self._concepts)


def _similar_chunks(chunk: Chunk, index: SymbolConceptIndex) -> list[tuple[str, float]]:
    source = frozenset(chunk.metadata.concepts)
    candidates: dict[str, None] = {}
    for concept in chunk.metadata.concepts:
        for cid in index.chunks_for_concept(concept):
            if cid != chunk.id:
                candidates.setdefault(cid, None)

    scored: list[tuple[str, float]] = []
    for cid in candidates:
        target = index.concepts_of(cid)
        union = source | target
        if not union:
            continue
        similarity = len(source & target) / len(union)
        if similarity > SIMILAR_CANDIDATE_MIN:
            scored.append((cid, similarity))
    scored.sort(key=lambda item: (-item[1], item[0]))
    return scored[:SIMILAR_TOP_N]


def build_relationships(chunks: Iterable[Chunk], index: SymbolConceptIndex) -> list[Relationship]:
    """Relationships from ``chunks`` to anything already in ``index``."""
    relationships: list[Relationship] = []
    for chunk in chunks:
        for call in find_function_calls(chunk.content):
            for target in index.chunks_for_symbol(call):
                if target != chunk.id:
                    relationships.append(
                        Relationship(chunk.id, target, RelationshipKind.CALLS, CALLS_STRENGTH, f"calls {call}")
                    )

        for dep in chunk.metadata.dependencies:
            for target in index.chunks_for_symbol(dep):
                if target != chunk.id:
                    relationships.append(
                        Relationship(chunk.id, target, RelationshipKind.IMPORTS, IMPORTS_STRENGTH, f"imports {dep}")
                    )

        for target, similarity in _similar_chunks(chunk, index):
            if similarity > SIMILAR_MIN:
                relationships.append(
                    Relationship(chunk.id, target, RelationshipKind.SIMILAR, similarity, "conceptual similarity")
                )
    return relationships
