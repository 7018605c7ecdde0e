"""
Реализует кодирование Хаффмана для сжатия текста в безопасный алфавит.
Дерево хранится плоским массивом, коды упаковываются по 6 бит.
"""

from typing import Callable, Dict, List, Optional, Tuple, Union
from collections import Counter
from dataclasses import dataclass

from format import (
    GROUP_BITS, DecodeError, EncodedText, SymbolRangeError,
    decode_groups, decode_nodes, encode_groups, encode_nodes,
)


PROGRESS_INTERVAL = 256
MAX_SYMBOL = 255

Progress = Optional[Callable[[str, Optional[int]], None]]


def _report(progress: Progress, stage: str, percent: Optional[int] = None):
    if progress is not None:
        progress(stage, percent)


def to_symbols(data: Union[str, bytes]) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)

    try:
        return data.encode('latin-1')
    except UnicodeEncodeError as e:
        raise SymbolRangeError(
            f"Character {data[e.start]!r} at position {e.start} is outside 0-255"
        ) from e


def count_frequencies(data: Union[str, bytes], progress: Progress = None) -> Dict[int, int]:
    symbols = to_symbols(data)
    frequencies: Counter = Counter()

    for start in range(0, len(symbols), PROGRESS_INTERVAL):
        _report(progress, "Counting Letters", start * 100 // len(symbols))
        frequencies.update(symbols[start:start + PROGRESS_INTERVAL])

    return dict(sorted(frequencies.items()))


class HuffmanNode:
    def __init__(self, symbol: Optional[int] = None, weight: int = 0,
                 left: Optional[int] = None, right: Optional[int] = None):
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right
        self.consumed = False

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def __repr__(self):
        if self.is_leaf:
            return f"LEAF({self.symbol}, weight={self.weight})"
        return f"NODE(weight={self.weight}, left={self.left}, right={self.right})"


@dataclass
class MergeStep:
    first: int
    second: int
    parent: int


class HuffmanTree:
    """
    Дерево строится линейным поиском двух наименьших весов.
    При равных весах выигрывает узел, встреченный раньше.
    """

    def __init__(self):
        self.nodes: List[HuffmanNode] = []
        self.merges: List[MergeStep] = []
        self.root: Optional[int] = None

    @property
    def leaf_count(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)

    def build(self, frequencies: Dict[int, int]):
        self.nodes = []
        self.merges = []
        self.root = None

        for symbol in sorted(frequencies):
            if not 0 <= symbol <= MAX_SYMBOL:
                raise SymbolRangeError(f"Symbol out of range: {symbol}")
            if frequencies[symbol] > 0:
                self.nodes.append(HuffmanNode(symbol=symbol, weight=frequencies[symbol]))

        if not self.nodes:
            return

        while True:
            first, second = self._two_smallest()
            if second is None:
                break

            # the larger of the pair goes left
            parent = HuffmanNode(
                weight=self.nodes[first].weight + self.nodes[second].weight,
                left=second, right=first
            )
            self.nodes[first].consumed = True
            self.nodes[second].consumed = True
            self.nodes.append(parent)
            self.merges.append(MergeStep(first, second, len(self.nodes) - 1))

        self.root = first

    def _two_smallest(self) -> Tuple[Optional[int], Optional[int]]:
        first = None
        second = None

        for index, node in enumerate(self.nodes):
            if node.consumed:
                continue

            if first is None or node.weight < self.nodes[first].weight:
                second = first
                first = index
            elif second is None or node.weight < self.nodes[second].weight:
                second = index

        return first, second

    def serialize(self) -> List[int]:
        """
        Лист хранится как его символ. Ветвление хранится как индекс
        правого потомка со знаком минус, левый потомок идёт следующим.
        """
        if self.root is None:
            return []

        output: List[Optional[int]] = []
        # frame: node id, phase, slot of the branch marker
        stack = [[self.root, 0, 0]]

        while stack:
            frame = stack[-1]
            node = self.nodes[frame[0]]

            if node.is_leaf:
                output.append(node.symbol)
                stack.pop()

            elif frame[1] == 0:
                frame[1] = 1
                frame[2] = len(output)
                output.append(None)
                stack.append([node.left, 0, 0])

            elif frame[1] == 1:
                frame[1] = 2
                output[frame[2]] = -len(output)
                stack.append([node.right, 0, 0])

            else:
                stack.pop()

        return output


def derive_codes(nodes: List[int], root: int = 0) -> Dict[int, str]:
    codes: Dict[int, str] = {}

    if not nodes:
        return codes

    stack = [(root, '')]
    while stack:
        index, code = stack.pop()
        value = nodes[index]

        if value >= 0:
            # a lone leaf still needs one bit per symbol
            codes[value] = code if code else '0'
        else:
            stack.append((-value, code + '1'))
            stack.append((index + 1, code + '0'))

    return codes


class BitStream:
    def __init__(self):
        self.groups: List[int] = []
        self.pending = ''
        self.bit_count = 0

    def write_bits(self, code: str):
        self.pending += code
        self.bit_count += len(code)

        while len(self.pending) >= GROUP_BITS:
            self.groups.append(int(self.pending[:GROUP_BITS], 2))
            self.pending = self.pending[GROUP_BITS:]

    def flush(self) -> List[int]:
        if self.pending:
            self.groups.append(int(self.pending.ljust(GROUP_BITS, '0'), 2))
            self.pending = ''

        return self.groups


class BitReader:
    def __init__(self, groups: List[int]):
        self.groups = groups
        self.pos = 0
        self.current = 0
        self.remaining = 0

    def read_bit(self) -> int:
        if self.remaining == 0:
            if self.pos >= len(self.groups):
                raise DecodeError("Bitstream ended before all symbols were decoded")
            self.current = self.groups[self.pos]
            self.pos += 1
            self.remaining = GROUP_BITS

        self.remaining -= 1
        return (self.current >> self.remaining) & 1


def validate_nodes(nodes: List[int], root: int = 0):
    if not 0 <= root < len(nodes):
        raise DecodeError(f"Root index {root} outside tree of {len(nodes)} nodes")

    for index, value in enumerate(nodes):
        if value > MAX_SYMBOL:
            raise DecodeError(f"Leaf value {value} at slot {index} is not a symbol")

        if value < 0:
            target = -value
            if not index + 1 < target < len(nodes):
                raise DecodeError(f"Branch at slot {index} points outside the tree")


def decode_symbols(nodes: List[int], groups: List[int], length: int,
                   root: int = 0) -> bytes:
    if length < 0:
        raise DecodeError(f"Negative symbol count: {length}")
    if length == 0:
        return b''
    if not nodes:
        raise DecodeError(f"Empty tree cannot produce {length} symbols")

    validate_nodes(nodes, root)

    reader = BitReader(groups)
    output = bytearray()
    single = nodes[root] >= 0

    for _ in range(length):
        index = root

        if single and reader.read_bit():
            raise DecodeError("Unexpected 1 bit in a single-symbol stream")

        while nodes[index] < 0:
            if reader.read_bit():
                index = -nodes[index]
            else:
                index += 1

        output.append(nodes[index])

    return bytes(output)


class HuffmanEncoder:
    @staticmethod
    def encode(data: Union[str, bytes],
               progress: Progress = None) -> Tuple[List[int], List[int]]:
        symbols = to_symbols(data)

        if not symbols:
            return [], []

        frequencies = count_frequencies(symbols, progress)

        _report(progress, "Constructing node list")
        tree = HuffmanTree()
        _report(progress, "Constructing tree")
        tree.build(frequencies)

        _report(progress, "Making final array")
        nodes = tree.serialize()

        _report(progress, "Determining codes")
        codes = derive_codes(nodes)

        bitstream = BitStream()
        for pos, symbol in enumerate(symbols):
            if pos % PROGRESS_INTERVAL == 0:
                _report(progress, "Building data stream", pos * 100 // len(symbols))
            bitstream.write_bits(codes[symbol])

        return nodes, bitstream.flush()

    @staticmethod
    def decode(nodes: List[int], groups: List[int], length: int, root: int = 0) -> bytes:
        return decode_symbols(nodes, groups, length, root)


def compress_text(data: Union[str, bytes], progress: Progress = None) -> EncodedText:
    nodes, groups = HuffmanEncoder.encode(data, progress)

    return EncodedText(
        nodes=encode_nodes(nodes),
        data=encode_groups(groups),
        length=len(data)
    )


def decompress_bytes(encoded: EncodedText) -> bytes:
    nodes = decode_nodes(encoded.nodes)
    groups = decode_groups(encoded.data)

    return HuffmanEncoder.decode(nodes, groups, encoded.length, encoded.root)


def decompress_text(encoded: EncodedText) -> str:
    return decompress_bytes(encoded).decode('latin-1')
