"""
Context Provider

Answers the "show me where this is" questions for a finding: the source
lines around it, the signature of the enclosing Go function or method, and
every line in the file where the variable's identifier appears.

File access goes through the shared GoSourceLoader, so binary, oversized
and unreadable files are skipped the same way the linter skips them.
"""

import logging
from typing import List, Optional, Tuple

from tree_sitter import Node

from redecl.go_parser import GoSourceLoader, node_text, walk_type

logger = logging.getLogger(__name__)

_DECLARATIONS = ("function_declaration", "method_declaration")


class ContextProvider:
    def __init__(self, loader: GoSourceLoader):
        self.loader = loader

    def _lines(self, file_path: str) -> Optional[List[str]]:
        source, _ = self.loader.get_tree(file_path)
        if source is None:
            return None
        return source.decode("utf-8", errors="replace").splitlines(keepends=True)

    def get_code_context(self, file_path: str, line_number: int, context_lines: int = 8) -> str:
        """Source text of the lines within ``context_lines`` of a 1-based line."""
        lines = self._lines(file_path)
        if lines is None:
            return f"Error: Cannot read {file_path}"
        first = max(0, line_number - 1 - context_lines)
        return "".join(lines[first:line_number + context_lines])

    def get_enclosing_function(self, file_path: str, line_number: int) -> Optional[str]:
        """
        Signature (everything before the body) of the function or method
        declaration containing ``line_number``; None at package level.
        Function literals report the declaration they are nested in.
        """
        source, tree = self.loader.get_tree(file_path)
        if tree is None:
            return None
        row = line_number - 1
        for decl in tree.root_node.named_children:
            if decl.type not in _DECLARATIONS:
                continue
            if decl.start_point[0] <= row <= decl.end_point[0]:
                return _signature(decl, source)
        return None

    def find_symbol_uses(self, file_path: str, symbol: str) -> List[Tuple[int, str]]:
        """(line_number, line_text) for each line where ``symbol`` occurs as an identifier."""
        source, tree = self.loader.get_tree(file_path)
        if tree is None:
            return []
        lines = source.decode("utf-8", errors="replace").splitlines()
        rows = sorted({
            ident.start_point[0]
            for ident in walk_type(tree.root_node, "identifier")
            if node_text(ident, source) == symbol
        })
        logger.debug("%s: %d line(s) mention %r", file_path, len(rows), symbol)
        return [(row + 1, lines[row].rstrip()) for row in rows if row < len(lines)]


def _signature(decl: Node, source: bytes) -> str:
    body = decl.child_by_field_name("body")
    end = body.start_byte if body is not None else decl.end_byte
    return source[decl.start_byte:end].decode("utf-8", errors="replace").strip()
