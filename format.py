"""
Определяет безопасный алфавит для встраивания данных в строковые литералы.
"""

from typing import List
from dataclasses import dataclass


SAFE_BASE = 42
RESERVED_BYTE = 92
SAFE_MAX = SAFE_BASE + 64
GROUP_BITS = 6
GROUP_MASK = (1 << GROUP_BITS) - 1
NODE_BIAS = 512
CHUNK_WIDTH = 74


class SymbolRangeError(ValueError):
    pass


class DecodeError(ValueError):
    pass


@dataclass
class EncodedText:
    nodes: str
    data: str
    length: int
    root: int = 0

    @property
    def encoded_size(self) -> int:
        return len(self.nodes) + len(self.data)


def to_safe(value: int) -> str:
    if not 0 <= value <= GROUP_MASK:
        raise ValueError(f"Value out of 6-bit range: {value}")

    byte = SAFE_BASE + value
    if byte >= RESERVED_BYTE:
        byte += 1
    return chr(byte)


def from_safe(char: str) -> int:
    byte = ord(char)
    if byte < SAFE_BASE or byte > SAFE_MAX or byte == RESERVED_BYTE:
        raise DecodeError(f"Character outside safe alphabet: {char!r}")

    if byte > RESERVED_BYTE:
        byte -= 1
    return byte - SAFE_BASE


def encode_nodes(nodes: List[int]) -> str:
    output = []

    for value in nodes:
        biased = value + NODE_BIAS
        output.append(to_safe((biased >> GROUP_BITS) & GROUP_MASK))
        output.append(to_safe(biased & GROUP_MASK))

    return ''.join(output)


def decode_nodes(text: str) -> List[int]:
    if len(text) % 2:
        raise DecodeError("Tree segment has odd length")

    nodes = []
    for pos in range(0, len(text), 2):
        high = from_safe(text[pos])
        low = from_safe(text[pos + 1])
        nodes.append((high << GROUP_BITS) + low - NODE_BIAS)

    return nodes


def encode_groups(groups: List[int]) -> str:
    return ''.join(to_safe(group) for group in groups)


def decode_groups(text: str) -> List[int]:
    return [from_safe(char) for char in text]


def wrap(text: str, width: int = CHUNK_WIDTH) -> List[str]:
    # the last chunk is always kept, even when empty
    if width < 1:
        raise ValueError(f"Chunk width must be positive: {width}")

    chunks = []
    while len(text) > width:
        chunks.append(text[:width])
        text = text[width:]
    chunks.append(text)

    return chunks


def is_literal_safe(text: str) -> bool:
    return all(SAFE_BASE <= ord(ch) <= SAFE_MAX and ord(ch) != RESERVED_BYTE
               for ch in text)
