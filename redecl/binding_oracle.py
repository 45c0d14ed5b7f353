"""
Binding Oracle — decides whether a ``:=`` target introduces a new variable.

Go's short variable declaration only redeclares a name that is already
declared in the *same* block; everywhere else the name is a fresh variable
shadowing any outer one.  ScopeBindingOracle reproduces that rule from the
syntax tree alone:

  • a function block holds the receiver, parameters and named results, and
    the function body shares it
  • if / for / switch / select statements and each case clause open
    implicit blocks; braces open explicit blocks
  • var / const / type declarations and := forms add names to the current
    block as they are encountered in source order

NullBindingOracle is the fail-open fallback: it never claims a new binding,
so no legitimate finding is suppressed (at the cost of false positives for
genuinely shadowing := statements).
"""

import logging
from typing import Dict, List, Set, Tuple

from tree_sitter import Node, Tree

from redecl.go_parser import has_token, node_text, statements_of, target_identifiers

logger = logging.getLogger(__name__)

_FUNCTION_NODES = {"function_declaration", "method_declaration", "func_literal"}
_SIGNATURE_FIELDS = ("receiver", "parameters", "result")


class BindingOracle:
    """Interface: ``is_new_binding(identifier) -> bool``."""

    def is_new_binding(self, ident: Node) -> bool:
        raise NotImplementedError("is_new_binding() must be implemented")


class NullBindingOracle(BindingOracle):
    def is_new_binding(self, ident: Node) -> bool:
        return False


class ScopeBindingOracle(BindingOracle):
    """Block-scope resolver over a whole Go file."""

    def __init__(self, tree: Tree, source: bytes):
        self._source = source
        # (start_byte, end_byte) of a := target -> introduces a new variable
        self._new: Dict[Tuple[int, int], bool] = {}
        for child in tree.root_node.named_children:
            self._visit_expr(child)
        logger.debug("ScopeBindingOracle: resolved %d := targets", len(self._new))

    def is_new_binding(self, ident: Node) -> bool:
        return self._new.get((ident.start_byte, ident.end_byte), False)

    # ────────────────────────────────────────────────────────────────
    #  Declarations
    # ────────────────────────────────────────────────────────────────

    def _text(self, node: Node) -> str:
        return node_text(node, self._source)

    def _define(self, targets: Node, block: Set[str], always_new: bool = False):
        """Record each identifier of a := target list, then declare it."""
        names = []
        for ident in target_identifiers(targets):
            name = self._text(ident)
            self._new[(ident.start_byte, ident.end_byte)] = always_new or name not in block
            names.append(name)
        block.update(names)

    def _declare_specs(self, decl: Node, blocks: List[Set[str]]):
        """var / const / type declarations, single or grouped."""
        for spec in decl.named_children:
            if spec.type.endswith("_spec_list"):
                self._declare_specs(spec, blocks)
                continue
            if spec.type not in ("var_spec", "const_spec", "type_spec", "type_alias"):
                continue
            value = spec.child_by_field_name("value")
            if value is not None:
                self._visit_expr(value)
            for name in spec.children_by_field_name("name"):
                blocks[-1].add(self._text(name))

    # ────────────────────────────────────────────────────────────────
    #  Traversal
    # ────────────────────────────────────────────────────────────────

    def _visit_function(self, fn: Node):
        block: Set[str] = set()
        for field_name in _SIGNATURE_FIELDS:
            params = fn.child_by_field_name(field_name)
            if params is None or params.type != "parameter_list":
                continue
            for param in params.named_children:
                for name in param.children_by_field_name("name"):
                    block.add(self._text(name))
        body = fn.child_by_field_name("body")
        if body is not None:
            self._visit_statements(statements_of(body), [block])

    def _visit_expr(self, node: Node):
        """Find function literals inside an expression and resolve them."""
        if node is None:
            return
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type in _FUNCTION_NODES:
                self._visit_function(current)
            else:
                stack.extend(current.named_children)

    def _visit_block(self, block: Node, blocks: List[Set[str]]):
        if block is None:
            return
        self._visit_statements(statements_of(block), blocks + [set()])

    def _visit_statements(self, stmts: List[Node], blocks: List[Set[str]]):
        for stmt in stmts:
            self._visit_stmt(stmt, blocks)

    def _visit_optional(self, node: Node, field_name: str, blocks: List[Set[str]]):
        child = node.child_by_field_name(field_name)
        if child is not None:
            self._visit_stmt(child, blocks)

    def _visit_stmt(self, node: Node, blocks: List[Set[str]]):
        t = node.type

        if t == "block":
            self._visit_block(node, blocks)

        elif t in ("var_declaration", "const_declaration", "type_declaration"):
            self._declare_specs(node, blocks)

        elif t == "short_var_declaration":
            self._visit_expr(node.child_by_field_name("right"))
            self._define(node.child_by_field_name("left"), blocks[-1])

        elif t == "receive_statement":
            self._visit_expr(node.child_by_field_name("right"))
            left = node.child_by_field_name("left")
            if left is not None:
                if has_token(node, ":="):
                    self._define(left, blocks[-1])
                else:
                    self._visit_expr(left)

        elif t == "if_statement":
            inner = blocks + [set()]
            self._visit_optional(node, "initializer", inner)
            self._visit_expr(node.child_by_field_name("condition"))
            self._visit_block(node.child_by_field_name("consequence"), inner)
            self._visit_optional(node, "alternative", inner)

        elif t == "for_statement":
            self._visit_for(node, blocks + [set()])

        elif t == "expression_switch_statement":
            inner = blocks + [set()]
            self._visit_optional(node, "initializer", inner)
            value = node.child_by_field_name("value")
            if value is not None:
                self._visit_expr(value)
            for case in node.named_children:
                if case.type not in ("expression_case", "default_case"):
                    continue
                values = tuple(case.children_by_field_name("value"))
                for v in values:
                    self._visit_expr(v)
                self._visit_statements(statements_of(case, values), inner + [set()])

        elif t == "type_switch_statement":
            inner = blocks + [set()]
            self._visit_optional(node, "initializer", inner)
            symbols: Set[str] = set()
            alias = node.child_by_field_name("alias")
            if alias is not None:
                self._define(alias, symbols, always_new=True)
            self._visit_expr(node.child_by_field_name("value"))
            for case in node.named_children:
                if case.type not in ("type_case", "default_case"):
                    continue
                types = tuple(case.children_by_field_name("type"))
                self._visit_statements(statements_of(case, types), inner + [set(symbols)])

        elif t == "select_statement":
            for case in node.named_children:
                if case.type not in ("communication_case", "default_case"):
                    continue
                clause = blocks + [set()]
                comm = case.child_by_field_name("communication")
                if comm is not None:
                    self._visit_stmt(comm, clause)
                    self._visit_statements(statements_of(case, (comm,)), clause)
                else:
                    self._visit_statements(statements_of(case), clause)

        elif t == "labeled_statement":
            for child in node.named_children:
                if child.type != "label_name":
                    self._visit_stmt(child, blocks)

        else:
            self._visit_expr(node)

    def _visit_for(self, node: Node, blocks: List[Set[str]]):
        for child in node.named_children:
            if child.type == "for_clause":
                self._visit_optional(child, "initializer", blocks)
                cond = child.child_by_field_name("condition")
                if cond is not None:
                    self._visit_expr(cond)
                self._visit_optional(child, "update", blocks)
            elif child.type == "range_clause":
                self._visit_expr(child.child_by_field_name("right"))
                left = child.child_by_field_name("left")
                if left is not None:
                    if has_token(child, ":="):
                        self._define(left, blocks[-1])
                    else:
                        self._visit_expr(left)
            elif child.type == "block":
                self._visit_block(child, blocks)
            elif child.type != "comment":
                self._visit_expr(child)
