"""
Генерирует JavaScript-декодер вокруг закодированных сегментов и читает его обратно.
"""

import re
from typing import List

from format import (
    CHUNK_WIDTH, GROUP_BITS, NODE_BIAS, RESERVED_BYTE, SAFE_BASE,
    DecodeError, EncodedText, is_literal_safe, wrap,
)


SCRIPT_OPEN = '<script language="JavaScript1.2">\n<!--\n'
SCRIPT_CLOSE = '// --></script>'

# a: tree segment, d: bitstream, c: symbol count, l: tree array,
# e: read position, b: current group, a (reused): bits left in b
DECODER_TEMPLATE = (
    'a={nodes};\n'
    'l=new Array();\n'
    'while(a.length){{l.push((Y(a.charCodeAt(0))<<{bits})+Y(a.charCodeAt(1))-{bias});\n'
    'a=a.slice(2,a.length)}}\n'
    'd={data};\n'
    'c={length};e=b=a=0;o="";\n'
    'function Y(y){{if(y>{reserved})y--;return y-{base}}}\n'
    'function B(){{if(a==0){{b=Y(d.charCodeAt(e++));a={bits};}}\n'
    'return ((b>>--a)&0x01);}}\n'
    'while(c--){{i={root};if(l[{root}]>=0)B();while(l[i]<0){{if(B())i=-l[i];else i++;}}\n'
    'o+=String.fromCharCode(l[i]);}}document.write(o);\n'
)

_LITERAL = r'("[^"]*"(?:\s*\+\s*"[^"]*")*);'
NODES_PATTERN = re.compile(r'^a=' + _LITERAL, re.MULTILINE)
DATA_PATTERN = re.compile(r'^d=' + _LITERAL, re.MULTILINE)
LENGTH_PATTERN = re.compile(r'^c=(\d+);', re.MULTILINE)
ROOT_PATTERN = re.compile(r'while\(c--\)\{i=(\d+);')


def render_literal(text: str, width: int = CHUNK_WIDTH) -> str:
    return '\n+'.join(f'"{chunk}"' for chunk in wrap(text, width))


def render_script(encoded: EncodedText, width: int = CHUNK_WIDTH, tag: bool = True) -> str:
    if not (is_literal_safe(encoded.nodes) and is_literal_safe(encoded.data)):
        raise ValueError("Encoded segments contain characters outside the safe alphabet")

    body = DECODER_TEMPLATE.format_map({
        'nodes': render_literal(encoded.nodes, width),
        'data': render_literal(encoded.data, width),
        'length': encoded.length,
        'root': encoded.root,
        'bits': GROUP_BITS,
        'bias': NODE_BIAS,
        'reserved': RESERVED_BYTE,
        'base': SAFE_BASE,
    })

    if not tag:
        return body
    return SCRIPT_OPEN + body + SCRIPT_CLOSE


def _read_literal(pattern: re.Pattern, text: str, name: str) -> str:
    match = pattern.search(text)
    if match is None:
        raise DecodeError(f"Script has no '{name}=' assignment")

    parts: List[str] = re.findall(r'"([^"]*)"', match.group(1))
    return ''.join(parts)


def parse_script(text: str) -> EncodedText:
    nodes = _read_literal(NODES_PATTERN, text, 'a')
    data = _read_literal(DATA_PATTERN, text, 'd')

    length = LENGTH_PATTERN.search(text)
    if length is None:
        raise DecodeError("Script has no 'c=' assignment")

    root = ROOT_PATTERN.search(text)

    return EncodedText(
        nodes=nodes,
        data=data,
        length=int(length.group(1)),
        root=int(root.group(1)) if root else 0
    )
