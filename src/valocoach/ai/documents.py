"""
Knowledge documents and chunking.

A Document is a piece of text plus metadata destined for the vector store.
Documents are split into chunks of at most ``max_size`` characters with a
recursive splitter: paragraphs first, then lines, sentences and words, and
a hard cut only when a single word is still too long. Adjacent small pieces
are merged back together so chunks stay close to the size limit.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, TypeVar

T = TypeVar("T")

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


@dataclass
class Chunk:
    """A piece of a document, carrying a copy of the document's metadata."""

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Document:
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str, metadata: dict[str, Any] | None = None) -> Document:
        return cls(text=text, metadata=dict(metadata or {}))

    @classmethod
    def from_json(cls, obj: Any, metadata: dict[str, Any] | None = None) -> Document:
        """Serialize obj as indented JSON so the splitter can cut on line breaks."""
        text = obj if isinstance(obj, str) else json.dumps(obj, ensure_ascii=False, indent=2)
        return cls(text=text, metadata=dict(metadata or {}))

    def chunk(self, max_size: int = 512) -> list[Chunk]:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        return [
            Chunk(text=piece, metadata=dict(self.metadata))
            for piece in split_text(self.text, max_size)
        ]


def split_text(
    text: str, max_size: int, separators: tuple[str, ...] = DEFAULT_SEPARATORS
) -> list[str]:
    """Split text into non-empty pieces no longer than max_size."""
    return [piece.strip() for piece in _split(text, max_size, separators) if piece.strip()]


def _split(text: str, max_size: int, separators: tuple[str, ...]) -> list[str]:
    if len(text) <= max_size:
        return [text]

    sep, rest = separators[0], separators[1:]
    if sep == "":
        return [text[i : i + max_size] for i in range(0, len(text), max_size)]

    parts = text.split(sep)
    # Keep the separator on the piece it ends
    pieces = [p + sep for p in parts[:-1]] + [parts[-1]]

    out: list[str] = []
    buffer = ""
    for piece in pieces:
        if len(piece) > max_size:
            if buffer:
                out.append(buffer)
                buffer = ""
            out.extend(_split(piece, max_size, rest or ("",)))
        elif len(buffer) + len(piece) <= max_size:
            buffer += piece
        else:
            out.append(buffer)
            buffer = piece
    if buffer:
        out.append(buffer)
    return out


def batched(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive lists of at most size items."""
    if size < 1:
        raise ValueError("size must be positive")
    batch: list[T] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch
