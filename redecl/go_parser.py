"""
Go Parser — tree-sitter front end for Go sources.

Owns the shared tree-sitter-go language/parser and the helpers every other
module uses to read Go syntax trees:

  • Source loading with a per-path cache (binary-file and size guards)
  • Cursor-based tree traversal (all nodes / nodes of one type)
  • Statement-list flattening across grammar versions
  • Identifier lookup by (line, column)
"""

import os
import logging
from typing import Dict, Iterator, List, Optional, Tuple

import tree_sitter_go as tsgo
from tree_sitter import Language, Parser, Node, Tree

logger = logging.getLogger(__name__)

GO_LANGUAGE = Language(tsgo.language())
_parser = Parser(GO_LANGUAGE)

GO_EXTENSION = ".go"
DEFAULT_MAX_FILE_BYTES = 2_000_000

# Node types that never carry statements or expressions of interest
_TRIVIA = {"comment", "empty_statement"}


def parse_source(source) -> Tree:
    """Parse Go source text (str or bytes) into a tree-sitter Tree."""
    if isinstance(source, str):
        source = source.encode("utf-8")
    return _parser.parse(source)


def norm_path(p: str) -> str:
    """Normalise a path to forward slashes for cross-platform comparisons."""
    return p.replace("\\", "/")


# ═══════════════════════════════════════════════════════════════════════
#  Source loading
# ═══════════════════════════════════════════════════════════════════════

class GoSourceLoader:
    """Reads and parses Go files relative to a workspace root, with caching."""

    def __init__(self, workspace_root: str, max_file_bytes: int = DEFAULT_MAX_FILE_BYTES):
        self.workspace_root = workspace_root
        self.max_file_bytes = max_file_bytes
        self._cache: Dict[str, Tuple[bytes, Tree]] = {}  # abs path -> (source, tree)

    def resolve(self, file_path: str) -> str:
        """Resolve a (possibly POSIX-style) relative path to an absolute path."""
        native = file_path.replace("/", os.sep).replace("\\", os.sep)
        if os.path.isabs(native):
            return native
        return os.path.join(self.workspace_root, native)

    def get_tree(self, file_path: str) -> Tuple[Optional[bytes], Optional[Tree]]:
        """Parse a file and cache the result. Returns (None, None) if unusable."""
        full = self.resolve(file_path)
        if full in self._cache:
            return self._cache[full]

        if not os.path.isfile(full):
            logger.warning("File not found: %s", full)
            return None, None

        try:
            size = os.path.getsize(full)
            if size > self.max_file_bytes:
                logger.warning(
                    "Skipping %s: %d bytes exceeds the %d byte limit",
                    full, size, self.max_file_bytes,
                )
                return None, None
            with open(full, "rb") as f:
                source = f.read()
            if b"\x00" in source[:8192]:
                logger.warning("Skipping binary file: %s", full)
                return None, None
            tree = _parser.parse(source)
            if tree.root_node.has_error:
                logger.info("Parse errors in %s; analysing the recoverable parts", full)
            self._cache[full] = (source, tree)
            return source, tree
        except OSError as e:
            logger.error("Failed to read %s: %s", full, e)
            return None, None

    def invalidate(self, file_path: str) -> None:
        """Drop the cached tree for a file (e.g. after a fix rewrote it)."""
        self._cache.pop(self.resolve(file_path), None)


# ═══════════════════════════════════════════════════════════════════════
#  Tree helpers
# ═══════════════════════════════════════════════════════════════════════

def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def walk_all(node: Node) -> Iterator[Node]:
    """Yield the node and all its descendants in pre-order."""
    cursor = node.walk()
    visited = False
    while True:
        if not visited:
            yield cursor.node
        if not visited and cursor.goto_first_child():
            visited = False
            continue
        if cursor.goto_next_sibling():
            visited = False
            continue
        if cursor.goto_parent():
            visited = True
            continue
        break


def walk_type(node: Node, type_name: str) -> Iterator[Node]:
    """Yield all descendant nodes of a given type."""
    for n in walk_all(node):
        if n.type == type_name:
            yield n


def statements_of(node: Node, skip: Tuple[Node, ...] = ()) -> List[Node]:
    """Return the statements directly contained in a block or case clause.

    Newer tree-sitter-go releases wrap statements in a ``statement_list``
    node while older ones inline them; both shapes are flattened here.
    Nodes listed in ``skip`` (case values, clause headers) are left out.
    """
    stmts: List[Node] = []
    for child in node.named_children:
        if child in skip or child.type in _TRIVIA:
            continue
        if child.type == "statement_list":
            stmts.extend(c for c in child.named_children if c.type not in _TRIVIA)
        else:
            stmts.append(child)
    return stmts


def has_token(node: Node, token: str) -> bool:
    """True if an anonymous child token (e.g. ':=' or '&') is present."""
    return any(not c.is_named and c.type == token for c in node.children)


def find_identifier_at(tree: Tree, line: int, column: int) -> Optional[Node]:
    """Return the identifier starting at a 1-based (line, byte column)."""
    row, col = line - 1, column - 1
    for node in walk_type(tree.root_node, "identifier"):
        if node.start_point[0] == row and node.start_point[1] == col:
            return node
    return None


def find_enclosing(node: Node, types) -> Optional[Node]:
    """Walk up the tree to find the nearest enclosing node of given types."""
    current = node.parent
    while current is not None:
        if current.type in types:
            return current
        current = current.parent
    return None


def target_identifiers(targets: Optional[Node]) -> List[Node]:
    """Identifiers of an assignment target list (``a, b`` or a bare ``a``)."""
    if targets is None:
        return []
    if targets.type == "identifier":
        return [targets]
    return [n for n in targets.named_children if n.type == "identifier"]
