"""Character index to byte offset conversion."""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import Sequence

from .models import Span

__all__ = ["ByteOffsets", "byte_offsets"]


def byte_offsets(text: str, encoding: str = "utf-8") -> list[int]:
    """Return the byte offset of every character index of ``text``.

    The result has ``len(text) + 1`` entries; the last one is the encoded
    length. Characters the encoding cannot represent count as their
    replacement bytes.

    Example:
        >>> byte_offsets("aé", "utf-8")
        [0, 1, 3]
    """

    encoder = codecs.getincrementalencoder(encoding)(errors="replace")
    offsets = [0]
    total = 0
    for char in text:
        total += len(encoder.encode(char))
        offsets.append(total)
    # Stateful encodings may flush trailing bytes on the final call.
    tail = len(encoder.encode("", final=True))
    if tail:
        offsets[-1] = total + tail
    return offsets


@dataclass(frozen=True, slots=True)
class ByteOffsets:
    """Byte offset table for one source text."""

    offsets: Sequence[int]
    encoding: str

    @classmethod
    def build(cls, text: str, encoding: str = "utf-8") -> "ByteOffsets":
        return cls(offsets=byte_offsets(text, encoding), encoding=encoding)

    def __len__(self) -> int:
        return len(self.offsets) - 1

    def at(self, index: int) -> int:
        """Byte offset of character ``index``.

        Raises:
            IndexError: If ``index`` is outside ``0..len(text)``.
        """

        if index < 0 or index >= len(self.offsets):
            raise IndexError(
                f"Character index {index} outside 0..{len(self.offsets) - 1}"
            )
        return self.offsets[index]

    def convert(self, span: Span) -> Span:
        """Map a character span to the equivalent byte span."""

        return Span(self.at(span.start), self.at(span.end))
