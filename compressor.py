"""
Главный класс для сжатия текста в самораспаковывающийся скрипт.
"""

import os
from typing import Dict, Optional, Tuple, Union

from format import CHUNK_WIDTH, EncodedText, decode_nodes
from huffman import compress_text, count_frequencies, decompress_bytes, derive_codes, to_symbols
from script import parse_script, render_script


class CompressionStats:
    def __init__(self, data: Union[str, bytes], encoded: EncodedText, script_size: int):
        self.original_size = encoded.length
        self.script_size = script_size

        self.frequencies: Dict[int, int] = count_frequencies(to_symbols(data))
        self.codes: Dict[int, str] = derive_codes(decode_nodes(encoded.nodes), encoded.root)

        self.distinct_symbols = len(self.frequencies)
        self.node_count = len(encoded.nodes) // 2
        self.data_chars = len(encoded.data)

        self.total_bits = sum(
            len(self.codes[symbol]) * count for symbol, count in self.frequencies.items()
        )
        self.average_code_length = (
            self.total_bits / self.original_size
            if self.original_size > 0 else 0
        )

        self.compression_ratio = (
            self.script_size / self.original_size * 100
            if self.original_size > 0 else 0
        )
        # may be negative when the script outgrows the input
        self.saved_percent = (
            100 * (self.original_size - self.script_size) // self.original_size
            if self.original_size > 0 else 0
        )

    def summary(self) -> str:
        return (f"Done.  Compressed by {self.saved_percent}% "
                f"({self.original_size} -> {self.script_size})")

    def print_stats(self, show_codes: bool = False):
        print(f"Huffman Script Statistics:")
        print(f"  Original size:       {self.original_size} symbols")
        print(f"  Distinct symbols:    {self.distinct_symbols}")
        print(f"  Tree nodes:          {self.node_count}")
        print(f"  Stream characters:   {self.data_chars}")
        print(f"  Avg code length:     {self.average_code_length:.2f} bits")
        print(f"  Script size:         {self.script_size} bytes")
        print(f"  Compression ratio:   {self.compression_ratio:.1f}%")

        if show_codes:
            print(f"\n{'Symbol':<10} {'Count':>10}  Code")
            print("-" * 40)
            for symbol, count in sorted(self.frequencies.items(),
                                        key=lambda item: (-item[1], item[0])):
                label = chr(symbol) if 32 < symbol < 127 else f"0x{symbol:02x}"
                print(f"{label:<10} {count:>10}  {self.codes[symbol]}")


class TextCompressor:
    def __init__(self, width: int = CHUNK_WIDTH, tag: bool = True, verbose: bool = False):
        if width < 1:
            raise ValueError(f"Chunk width must be positive: {width}")

        self.width = width
        self.tag = tag
        self.verbose = verbose

    def _progress(self, stage: str, percent: Optional[int] = None):
        if percent is None:
            print(stage)
        else:
            print(f"{stage} - {percent}%")

    def compress(self, data: Union[str, bytes]) -> Tuple[EncodedText, str]:
        progress = self._progress if self.verbose else None

        encoded = compress_text(data, progress)

        if progress:
            progress("Writing final script")
        script = render_script(encoded, self.width, self.tag)

        return encoded, script

    def decompress(self, script: str) -> bytes:
        return decompress_bytes(parse_script(script))

    def compress_file(self, file_path: str, output_path: str) -> Optional[CompressionStats]:
        if not os.path.isfile(file_path):
            print(f"Error: {file_path} not found")
            return None

        with open(file_path, 'rb') as f:
            data = f.read()

        if not self.verbose:
            print(f"Compressing {file_path}...", end=" ")

        encoded, script = self.compress(data)
        stats = CompressionStats(data, encoded, len(script))

        with open(output_path, 'w', encoding='ascii', newline='\n') as f:
            f.write(script)

        if not self.verbose:
            print(f"OK ({stats.compression_ratio:.1f}%)")
        print(stats.summary())

        return stats

    def decompress_file(self, script_path: str, output_path: str) -> bool:
        if not os.path.isfile(script_path):
            print(f"Error: {script_path} not found")
            return False

        try:
            with open(script_path, 'r', encoding='ascii') as f:
                script = f.read()
            data = self.decompress(script)
        except ValueError as e:
            print(f"Error reading script: {e}")
            return False

        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        with open(output_path, 'wb') as f:
            f.write(data)

        print(f"Decompressed {script_path} -> {output_path} ({len(data)} bytes)")
        return True

    def show_stats(self, file_path: str, show_codes: bool = False) -> Optional[CompressionStats]:
        if not os.path.isfile(file_path):
            print(f"Error: {file_path} not found")
            return None

        with open(file_path, 'rb') as f:
            data = f.read()

        encoded, script = self.compress(data)
        stats = CompressionStats(data, encoded, len(script))
        stats.print_stats(show_codes)

        return stats
