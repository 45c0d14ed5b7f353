"""
redundant-var-decl rule — detects ``var`` declarations that are rebound by
``:=`` before ever being read:

    var err error                 // redundant
    result, err := someFunction()

Every function, method and function literal is analysed independently.
``init`` functions are excluded, and package-level declarations are never
tracked.
"""

import logging
from typing import List, Union

from tree_sitter import Node, Tree

from redecl.binding_oracle import BindingOracle, NullBindingOracle, ScopeBindingOracle
from redecl.go_parser import node_text, parse_source
from redecl.scope import RULE_NAME, Finding
from redecl.walker import StatementWalker

logger = logging.getLogger(__name__)

_FUNCTION_NODES = {"function_declaration", "method_declaration", "func_literal"}
_NAMED_FUNCTIONS = {"function_declaration", "method_declaration"}
_EXCLUDED_FUNCTIONS = {"init"}


def function_bodies(root: Node, source: bytes) -> List[Node]:
    """Bodies of all function-like units in pre-order, minus ``init``."""
    bodies: List[Node] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in _NAMED_FUNCTIONS:
            name = node.child_by_field_name("name")
            if name is not None and node_text(name, source) in _EXCLUDED_FUNCTIONS:
                continue
        if node.type in _FUNCTION_NODES:
            body = node.child_by_field_name("body")
            if body is not None:
                bodies.append(body)
        stack.extend(reversed(node.named_children))
    return bodies


class RedundantVarDeclRule:
    """Applies the redundant-var-decl check to parsed Go files."""

    name = RULE_NAME

    def __init__(self, resolve_bindings: bool = True):
        self.resolve_bindings = resolve_bindings
        if not resolve_bindings:
            logger.warning(
                "%s: binding resolution disabled; every := target is treated as a "
                "reuse, so shadowing declarations in inner blocks may be reported",
                RULE_NAME,
            )

    def _oracle(self, tree: Tree, source: bytes) -> BindingOracle:
        if self.resolve_bindings:
            return ScopeBindingOracle(tree, source)
        return NullBindingOracle()

    def apply(self, tree: Tree, source: bytes) -> List[Finding]:
        oracle = self._oracle(tree, source)
        failures: List[Finding] = []
        bodies = function_bodies(tree.root_node, source)
        for body in bodies:
            failures.extend(StatementWalker(source, oracle).walk_function(body))
        logger.debug("%s: %d function bodies, %d findings", RULE_NAME, len(bodies), len(failures))
        return failures

    def apply_source(self, source: Union[str, bytes]) -> List[Finding]:
        if isinstance(source, str):
            source = source.encode("utf-8")
        return self.apply(parse_source(source), source)
