import unittest
import tempfile
import os
import io
import sys
import random
import json
import shutil
import subprocess
from contextlib import redirect_stderr, redirect_stdout

from format import (
    EncodedText, DecodeError, SymbolRangeError, RESERVED_BYTE,
    to_safe, from_safe, encode_nodes, decode_nodes, encode_groups, decode_groups, wrap,
)
from huffman import (
    HuffmanTree, HuffmanEncoder, BitStream, BitReader, count_frequencies, derive_codes,
    compress_text, decompress_text, decompress_bytes,
)
from script import render_script, parse_script
from compressor import TextCompressor, CompressionStats
from main import main


ABRACADABRA_NODES = [-8, -5, -4, 114, 98, -7, 100, 99, 97]


def build_tree(frequencies):
    tree = HuffmanTree()
    tree.build(frequencies)
    return tree


class TestFrequencyCounter(unittest.TestCase):
    def test_counts_symbols(self):
        frequencies = count_frequencies("abracadabra")
        self.assertEqual(frequencies, {97: 5, 98: 2, 99: 1, 100: 1, 114: 2})

    def test_empty_input(self):
        self.assertEqual(count_frequencies(""), {})
        self.assertEqual(count_frequencies(b""), {})

    def test_bytes_and_text_agree(self):
        text = "Hello \xe9t\xe9"
        self.assertEqual(count_frequencies(text), count_frequencies(text.encode('latin-1')))

    def test_symbol_out_of_range(self):
        with self.assertRaises(SymbolRangeError) as ctx:
            count_frequencies("abЖc")
        self.assertIn("position 2", str(ctx.exception))

    def test_reports_progress(self):
        calls = []
        count_frequencies(b"x" * 1000, lambda stage, percent: calls.append((stage, percent)))
        self.assertEqual(calls[0], ("Counting Letters", 0))
        self.assertEqual(len(calls), 4)


class TestHuffmanTree(unittest.TestCase):
    def test_node_and_leaf_counts(self):
        tables = [
            {65: 3},
            {65: 1, 66: 1},
            count_frequencies("abracadabra"),
            {symbol: symbol + 1 for symbol in range(256)},
            {symbol: 7 for symbol in range(0, 256, 3)},
        ]
        for frequencies in tables:
            tree = build_tree(frequencies)
            k = len(frequencies)
            self.assertEqual(len(tree.nodes), 2 * k - 1)
            self.assertEqual(tree.leaf_count, k)
            self.assertEqual(len(tree.merges), k - 1)
            self.assertEqual(len(tree.serialize()), 2 * k - 1)

    def test_zero_counts_are_ignored(self):
        tree = build_tree({65: 0, 66: 4, 67: 2})
        self.assertEqual(tree.leaf_count, 2)

    def test_merges_take_two_smallest(self):
        random.seed(7)
        frequencies = {symbol: random.randint(1, 50) for symbol in range(0, 200, 2)}
        tree = build_tree(frequencies)

        live = set(range(len(frequencies)))
        for step in tree.merges:
            selected = {step.first, step.second}
            others = [tree.nodes[i].weight for i in live - selected]
            largest = max(tree.nodes[i].weight for i in selected)
            self.assertTrue(all(weight >= largest for weight in others))
            self.assertLessEqual(tree.nodes[step.first].weight, tree.nodes[step.second].weight)

            live -= selected
            live.add(step.parent)

        self.assertEqual(live, {tree.root})
        self.assertEqual(tree.nodes[tree.root].weight, sum(frequencies.values()))

    def test_tie_prefers_earlier_node(self):
        tree = build_tree({1: 1, 2: 1})
        step = tree.merges[0]
        self.assertEqual((step.first, step.second), (0, 1))
        self.assertEqual(tree.nodes[step.parent].left, 1)
        self.assertEqual(tree.nodes[step.parent].right, 0)
        self.assertEqual(tree.serialize(), [-2, 2, 1])

    def test_serialize_abracadabra(self):
        tree = build_tree(count_frequencies("abracadabra"))
        self.assertEqual(tree.serialize(), ABRACADABRA_NODES)

    def test_branch_markers(self):
        tree = build_tree({symbol: symbol % 13 + 1 for symbol in range(256)})
        nodes = tree.serialize()
        for index, value in enumerate(nodes):
            if value < 0:
                self.assertLessEqual(value, -2)
                self.assertGreater(-value, index + 1)

    def test_skewed_tree_is_not_recursive(self):
        frequencies = {symbol: 2 ** symbol for symbol in range(40)}
        frequencies.update({symbol: 1 for symbol in range(40, 256)})
        nodes = build_tree(frequencies).serialize()
        self.assertEqual(len(nodes), 511)

    def test_single_symbol(self):
        tree = build_tree({65: 5})
        self.assertEqual(tree.merges, [])
        self.assertEqual(tree.root, 0)
        self.assertEqual(tree.serialize(), [65])

    def test_empty_table(self):
        tree = build_tree({})
        self.assertIsNone(tree.root)
        self.assertEqual(tree.serialize(), [])


class TestCodeTable(unittest.TestCase):
    def test_abracadabra_codes(self):
        codes = derive_codes(ABRACADABRA_NODES)
        self.assertEqual(codes, {97: '1', 114: '000', 98: '001', 100: '010', 99: '011'})

    def test_single_symbol_code(self):
        self.assertEqual(derive_codes([65]), {65: '0'})

    def test_empty(self):
        self.assertEqual(derive_codes([]), {})

    def test_prefix_free(self):
        random.seed(3)
        for _ in range(5):
            text = bytes(random.choice(b"etaoinshrdlu ,.\n") for _ in range(2000))
            codes = derive_codes(build_tree(count_frequencies(text)).serialize())
            self.assertEqual(set(codes), set(text))

            values = list(codes.values())
            for a in values:
                for b in values:
                    if a != b:
                        self.assertFalse(b.startswith(a))


class TestBitStream(unittest.TestCase):
    def test_groups_of_six(self):
        stream = BitStream()
        stream.write_bits('101')
        stream.write_bits('111')
        stream.write_bits('00')
        self.assertEqual(stream.groups, [0b101111])
        self.assertEqual(stream.pending, '00')
        self.assertEqual(stream.flush(), [0b101111, 0])
        self.assertEqual(stream.bit_count, 8)

    def test_flush_pads_right(self):
        stream = BitStream()
        stream.write_bits('1')
        self.assertEqual(stream.flush(), [0b100000])

    def test_no_extra_group_on_boundary(self):
        stream = BitStream()
        stream.write_bits('110011')
        self.assertEqual(stream.flush(), [0b110011])

    def test_reader_high_bit_first(self):
        reader = BitReader([0b100000, 0b000001])
        bits = [reader.read_bit() for _ in range(12)]
        self.assertEqual(bits, [1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1])
        with self.assertRaises(DecodeError):
            reader.read_bit()


class TestSafeAlphabet(unittest.TestCase):
    def test_all_values(self):
        for value in range(64):
            char = to_safe(value)
            self.assertNotEqual(ord(char), RESERVED_BYTE)
            self.assertEqual(from_safe(char), value)

    def test_skips_backslash(self):
        self.assertEqual(to_safe(49), '[')
        self.assertEqual(to_safe(50), ']')
        self.assertEqual(to_safe(0), '*')
        self.assertEqual(to_safe(63), 'j')

    def test_rejects_out_of_range(self):
        with self.assertRaises(ValueError):
            to_safe(64)
        for char in ('\\', ')', 'k', '"'):
            with self.assertRaises(DecodeError):
                from_safe(char)

    def test_nodes_two_chars_each(self):
        text = encode_nodes(ABRACADABRA_NODES)
        self.assertEqual(len(text), 18)
        self.assertEqual(text[:2], '1c')
        self.assertEqual(decode_nodes(text), ABRACADABRA_NODES)

    def test_odd_node_segment(self):
        with self.assertRaises(DecodeError):
            decode_nodes('1c1')

    def test_groups(self):
        self.assertEqual(decode_groups(encode_groups([0, 49, 50, 63])), [0, 49, 50, 63])

    def test_wrap(self):
        self.assertEqual(wrap(''), [''])
        self.assertEqual(wrap('x' * 74), ['x' * 74])
        self.assertEqual(wrap('x' * 75), ['x' * 74, 'x'])
        self.assertEqual(wrap('abcdefg', 3), ['abc', 'def', 'g'])
        with self.assertRaises(ValueError):
            wrap('abc', 0)


class TestRoundTrip(unittest.TestCase):
    def assertRoundTrip(self, text):
        encoded = compress_text(text)
        self.assertEqual(decompress_text(encoded), text)
        self.assertEqual(encoded.length, len(text))
        self.assertNotIn('\\', encoded.nodes + encoded.data)
        return encoded

    def test_abracadabra(self):
        encoded = self.assertRoundTrip("abracadabra")
        self.assertEqual(len(encoded.nodes), 18)
        self.assertEqual(len(encoded.data), 4)
        self.assertLess(len(encoded.data), 22)
        self.assertEqual(encoded.encoded_size, 22)

    def test_empty(self):
        encoded = self.assertRoundTrip("")
        self.assertEqual(encoded, EncodedText(nodes='', data='', length=0))

    def test_single_symbol(self):
        encoded = self.assertRoundTrip("aaaaa")
        self.assertEqual(encoded.length, 5)
        self.assertEqual(decode_nodes(encoded.nodes), [97])
        self.assertEqual(encoded.data, to_safe(0))

    def test_single_character(self):
        self.assertRoundTrip("x")

    def test_bits_on_group_boundary(self):
        encoded = self.assertRoundTrip("ababab")
        self.assertEqual(len(encoded.data), 1)

    def test_all_byte_values(self):
        data = bytes(range(256)) * 3
        encoded = compress_text(data)
        self.assertEqual(decompress_bytes(encoded), data)

    def test_random_data(self):
        random.seed(42)
        data = bytes(random.getrandbits(8) for _ in range(10 * 1024))
        self.assertEqual(decompress_bytes(compress_text(data)), data)

    def test_skewed_text_shrinks(self):
        text = "Lorem ipsum dolor sit amet " * 200
        encoded = self.assertRoundTrip(text)
        self.assertLess(encoded.encoded_size, len(text))

    def test_progress_stages(self):
        stages = []
        compress_text("hello world" * 100, lambda stage, percent: stages.append(stage))
        for stage in ("Counting Letters", "Constructing tree", "Making final array",
                      "Determining codes", "Building data stream"):
            self.assertIn(stage, stages)

    def test_encoder_ints(self):
        nodes, groups = HuffmanEncoder.encode("abracadabra")
        self.assertEqual(nodes, ABRACADABRA_NODES)
        self.assertEqual(HuffmanEncoder.decode(nodes, groups, 11), b"abracadabra")


class TestMalformedInput(unittest.TestCase):
    def test_backslash_in_stream(self):
        encoded = compress_text("abracadabra")
        encoded.data = '\\' + encoded.data[1:]
        with self.assertRaises(DecodeError):
            decompress_text(encoded)

    def test_branch_outside_tree(self):
        encoded = EncodedText(nodes=encode_nodes([-5, 65, 66]), data=to_safe(0), length=1)
        with self.assertRaises(DecodeError):
            decompress_text(encoded)

    def test_branch_pointing_backwards(self):
        encoded = EncodedText(nodes=encode_nodes([-2, -1, 65]), data=to_safe(0), length=1)
        with self.assertRaises(DecodeError):
            decompress_text(encoded)

    def test_leaf_not_a_symbol(self):
        encoded = EncodedText(nodes=encode_nodes([300]), data=to_safe(0), length=1)
        with self.assertRaises(DecodeError):
            decompress_text(encoded)

    def test_truncated_stream(self):
        encoded = compress_text("abracadabra" * 20)
        encoded.data = encoded.data[:len(encoded.data) // 2]
        with self.assertRaises(DecodeError):
            decompress_text(encoded)

    def test_count_without_tree(self):
        with self.assertRaises(DecodeError):
            decompress_text(EncodedText(nodes='', data='', length=3))

    def test_single_symbol_with_one_bit(self):
        encoded = EncodedText(nodes=encode_nodes([65]), data=to_safe(0b100000), length=1)
        with self.assertRaises(DecodeError):
            decompress_text(encoded)

    def test_bad_root(self):
        encoded = compress_text("abracadabra")
        encoded.root = 20
        with self.assertRaises(DecodeError):
            decompress_text(encoded)


class TestScript(unittest.TestCase):
    def test_render_and_parse(self):
        encoded = compress_text("abracadabra")
        script = render_script(encoded)

        self.assertTrue(script.startswith('<script language="JavaScript1.2">'))
        self.assertTrue(script.endswith('// --></script>'))
        self.assertIn('c=11;', script)
        self.assertIn(f'a="{encoded.nodes}";', script)
        self.assertNotIn('\\', script)
        self.assertEqual(parse_script(script), encoded)

    def test_chunked_literals(self):
        text = "The quick brown fox jumps over the lazy dog. " * 40
        encoded = compress_text(text)
        script = render_script(encoded)

        for line in script.splitlines():
            if line.startswith(('a="', 'd="', '+"')):
                chunk = line.lstrip('+ad=').split('"')[1]
                self.assertLessEqual(len(chunk), 74)

        self.assertIn('"\n+"', script)
        self.assertEqual(decompress_text(parse_script(script)), text)

    def test_custom_width_without_tag(self):
        encoded = compress_text("mississippi river")
        script = render_script(encoded, width=5, tag=False)
        self.assertTrue(script.startswith('a="'))
        self.assertNotIn('<script', script)
        self.assertEqual(parse_script(script), encoded)

    def test_empty_script(self):
        encoded = compress_text("")
        script = render_script(encoded)
        self.assertIn('a="";', script)
        self.assertIn('c=0;', script)
        self.assertEqual(decompress_text(parse_script(script)), "")

    def test_trailing_padding_group(self):
        encoded = compress_text("ababab")
        encoded.data += to_safe(0)
        self.assertEqual(decompress_text(parse_script(render_script(encoded))), "ababab")

    def test_missing_assignment(self):
        with self.assertRaises(DecodeError):
            parse_script('a="**";\nc=1;\n')
        with self.assertRaises(DecodeError):
            parse_script('a="**";\nd="*";\n')

    def test_rejects_unsafe_segments(self):
        with self.assertRaises(ValueError):
            render_script(EncodedText(nodes='"', data='', length=0))

    def test_decoder_lines(self):
        script = render_script(compress_text("aaaaa"), tag=False)
        lines = script.splitlines()
        self.assertIn('function Y(y){if(y>92)y--;return y-42}', lines)
        self.assertIn('function B(){if(a==0){b=Y(d.charCodeAt(e++));a=6;}', lines)
        self.assertIn('while(c--){i=0;if(l[0]>=0)B();while(l[i]<0){if(B())i=-l[i];else i++;}',
                      lines)

    @unittest.skipUnless(shutil.which('node'), "node is not installed")
    def test_javascript_decoder_output(self):
        samples = [b"", b"aaaaa", b"abracadabra", bytes(range(256)) * 2]
        temp_dir = tempfile.mkdtemp()
        try:
            for data in samples:
                script = render_script(compress_text(data), tag=False)
                path = os.path.join(temp_dir, "decoder.js")
                with open(path, 'w', encoding='ascii') as f:
                    f.write('var document={write:function(s){'
                            'process.stdout.write(JSON.stringify(s))}};\n')
                    f.write(script)

                result = subprocess.run(['node', path], capture_output=True, check=True)
                written = json.loads(result.stdout.decode('utf-8'))
                self.assertEqual(written, data.decode('latin-1'))
        finally:
            shutil.rmtree(temp_dir)


class TestCompressionStats(unittest.TestCase):
    def test_abracadabra(self):
        encoded = compress_text("abracadabra")
        script = render_script(encoded)
        stats = CompressionStats("abracadabra", encoded, len(script))

        self.assertEqual(stats.distinct_symbols, 5)
        self.assertEqual(stats.node_count, 9)
        self.assertEqual(stats.total_bits, 23)
        self.assertLess(stats.saved_percent, 0)
        self.assertTrue(stats.summary().startswith("Done.  Compressed by -"))

    def test_empty(self):
        encoded = compress_text("")
        stats = CompressionStats("", encoded, 100)
        self.assertEqual(stats.average_code_length, 0)
        self.assertEqual(stats.saved_percent, 0)

    def test_print_stats(self):
        encoded = compress_text("aab")
        stats = CompressionStats("aab", encoded, 50)
        output = io.StringIO()
        with redirect_stdout(output):
            stats.print_stats(show_codes=True)
        self.assertIn("Distinct symbols:    2", output.getvalue())
        self.assertIn("a ", output.getvalue())


class TestTextCompressor(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.compressor = TextCompressor()

    def tearDown(self):
        import shutil
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _write(self, name, data):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_compress_decompress_file(self):
        data = "Привет, мир! Hello, world!\n".encode('utf-8') * 100
        source = self._write("page.html", data)
        script_path = os.path.join(self.temp_dir, "page.js")
        restored = os.path.join(self.temp_dir, "out", "page.html")

        with redirect_stdout(io.StringIO()):
            stats = self.compressor.compress_file(source, script_path)
            self.assertTrue(self.compressor.decompress_file(script_path, restored))

        self.assertGreater(stats.saved_percent, 0)
        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_missing_file(self):
        with redirect_stdout(io.StringIO()):
            self.assertIsNone(self.compressor.compress_file(
                os.path.join(self.temp_dir, "nope.txt"), os.path.join(self.temp_dir, "x.js")))
            self.assertFalse(self.compressor.decompress_file(
                os.path.join(self.temp_dir, "nope.js"), os.path.join(self.temp_dir, "x.txt")))

    def test_tampered_script(self):
        script_path = self._write("bad.js", b'a="1c";\nd="*";\nc=4;\n')
        output = io.StringIO()
        with redirect_stdout(output):
            ok = self.compressor.decompress_file(script_path, os.path.join(self.temp_dir, "x"))
        self.assertFalse(ok)
        self.assertIn("Error reading script", output.getvalue())

    def test_verbose_progress(self):
        compressor = TextCompressor(verbose=True)
        output = io.StringIO()
        with redirect_stdout(output):
            compressor.compress("hello world")
        self.assertIn("Counting Letters - 0%", output.getvalue())
        self.assertIn("Writing final script", output.getvalue())

    def test_in_memory(self):
        encoded, script = self.compressor.compress(b"in memory text")
        self.assertEqual(self.compressor.decompress(script), b"in memory text")

    def test_invalid_width(self):
        with self.assertRaises(ValueError):
            TextCompressor(width=0)


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        import shutil
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_compress_and_decompress(self):
        source = os.path.join(self.temp_dir, "input.txt")
        script_path = os.path.join(self.temp_dir, "input.js")
        restored = os.path.join(self.temp_dir, "restored.txt")

        with open(source, 'wb') as f:
            f.write(b"Content of file 1\n" * 50)

        with redirect_stdout(io.StringIO()):
            self.assertEqual(main(['compress', source, '-o', script_path, '--width', '40']), 0)
            self.assertEqual(main(['decompress', script_path, '-o', restored]), 0)
            self.assertEqual(main(['stats', source, '--codes']), 0)

        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), b"Content of file 1\n" * 50)

    def test_no_command(self):
        with redirect_stdout(io.StringIO()):
            self.assertEqual(main([]), 0)

    def test_missing_input(self):
        with redirect_stdout(io.StringIO()):
            self.assertEqual(main(['decompress', os.path.join(self.temp_dir, "x.js"),
                                   '-o', os.path.join(self.temp_dir, "x.txt")]), 1)

    def test_bad_width_exits(self):
        errors = io.StringIO()
        with redirect_stderr(errors), self.assertRaises(SystemExit) as ctx:
            main(['compress', 'x', '-o', 'y', '--width', '0'])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Error: Chunk width must be positive", errors.getvalue())


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for case in (TestFrequencyCounter, TestHuffmanTree, TestCodeTable, TestBitStream,
                 TestSafeAlphabet, TestRoundTrip, TestMalformedInput, TestScript,
                 TestCompressionStats, TestTextCompressor, TestCommandLine):
        suite.addTests(loader.loadTestsFromTestCase(case))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
