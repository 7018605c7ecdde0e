"""
Командная строка для компрессора текста в скрипт.
"""

import argparse
import sys
from compressor import TextCompressor
from format import CHUNK_WIDTH


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Huffman text compressor with an embedded JavaScript decoder',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress page.html -o page.js
  python main.py compress page.html -o page.js --width 60 --no-tag
  python main.py decompress page.js -o page.html
  python main.py stats page.html --codes
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress a text file into a script')
    compress_parser.add_argument('file', help='Input file')
    compress_parser.add_argument('-o', '--output', required=True, help='Script path')
    compress_parser.add_argument('--width', type=int, default=CHUNK_WIDTH,
                                 help=f'Literal chunk width (default={CHUNK_WIDTH})')
    compress_parser.add_argument('--no-tag', action='store_true', help='Omit the <script> element')
    compress_parser.add_argument('-v', '--verbose', action='store_true', help='Report progress')

    decompress_parser = subparsers.add_parser('decompress', help='Decode a generated script')
    decompress_parser.add_argument('script', help='Script path')
    decompress_parser.add_argument('-o', '--output', required=True, help='Output file')

    stats_parser = subparsers.add_parser('stats', help='Show compression statistics')
    stats_parser.add_argument('file', help='Input file')
    stats_parser.add_argument('--codes', action='store_true', help='Print the code table')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        compressor = TextCompressor(
            width=getattr(args, 'width', CHUNK_WIDTH),
            tag=not getattr(args, 'no_tag', False),
            verbose=getattr(args, 'verbose', False)
        )

        if args.command == 'compress':
            ok = compressor.compress_file(args.file, args.output) is not None

        elif args.command == 'decompress':
            ok = compressor.decompress_file(args.script, args.output)

        elif args.command == 'stats':
            ok = compressor.show_stats(args.file, args.codes) is not None

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    return 0 if ok else 1


if __name__ == '__main__':
    sys.exit(main())
