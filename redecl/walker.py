"""
Statement Walker — per-function liveness tracking for redundant ``var``s.

Visits the statements of one function body in source order, keeping a Scope
per block.  Every read of a variable marks its DeclarationRecord used; a
``:=`` that reuses a tracked, still-unused declaration produces a Finding at
the original ``var``.

Dispatch is a closed table keyed by tree-sitter-go statement node type.
Statement kinds missing from the table (const/type declarations, comments,
ERROR nodes) are skipped without side effects.
"""

import logging
from typing import Callable, Dict, List, Optional

from tree_sitter import Node

from redecl.binding_oracle import BindingOracle, NullBindingOracle
from redecl.go_parser import (
    has_token, node_text, statements_of, target_identifiers, walk_all,
)
from redecl.scope import DISCARD_NAME, Finding, Position, Scope

logger = logging.getLogger(__name__)


class StatementWalker:
    """Walks one function body and collects redundant-declaration findings."""

    def __init__(self, source: bytes, oracle: Optional[BindingOracle] = None):
        self._source = source
        self._oracle = oracle or NullBindingOracle()
        self.findings: List[Finding] = []
        self._dispatch: Dict[str, Callable[[Node, Scope], None]] = {
            "var_declaration": self._var_declaration,
            "short_var_declaration": self._short_var_declaration,
            "assignment_statement": self._assignment,
            "block": self.analyze_block,
            "if_statement": self._if,
            "for_statement": self._for,
            "expression_switch_statement": self._switch,
            "type_switch_statement": self._type_switch,
            "select_statement": self._select,
            "expression_case": self._case_clause,
            "type_case": self._case_clause,
            "default_case": self._case_clause,
            "communication_case": self._communication_clause,
            "expression_statement": self._expression_statement,
            "return_statement": self._expression_statement,
            "defer_statement": self._expression_statement,
            "go_statement": self._expression_statement,
            "send_statement": self._send,
            "receive_statement": self._receive,
            "inc_statement": self._expression_statement,
            "dec_statement": self._expression_statement,
            "labeled_statement": self._labeled,
            "break_statement": self._branch,
            "continue_statement": self._branch,
            "goto_statement": self._branch,
            "fallthrough_statement": self._branch,
        }

    # ────────────────────────────────────────────────────────────────
    #  Entry points
    # ────────────────────────────────────────────────────────────────

    def walk_function(self, body: Node) -> List[Finding]:
        """Analyse a function body with a fresh root scope.

        Findings are returned in source order of the redundant declarations.
        """
        self.findings = []
        self.analyze_block(body, Scope())
        return sorted(self.findings, key=lambda f: (f.position.line, f.position.column))

    def analyze_block(self, block: Node, scope: Scope) -> None:
        block_scope = scope.child()
        for stmt in statements_of(block):
            self.process(stmt, block_scope)

    def process(self, stmt: Node, scope: Scope) -> None:
        handler = self._dispatch.get(stmt.type)
        if handler is not None:
            handler(stmt, scope)

    # ────────────────────────────────────────────────────────────────
    #  Usage marking
    # ────────────────────────────────────────────────────────────────

    def _text(self, node: Node) -> str:
        return node_text(node, self._source)

    def mark_used(self, expr: Optional[Node], scope: Scope) -> None:
        """Mark every variable read anywhere inside ``expr`` as used.

        Includes identifiers captured by nested function literals and the
        operand of ``&ident`` (the pointer may be read later).
        """
        if expr is None:
            return
        for node in walk_all(expr):
            if node.type == "identifier":
                scope.mark_used(self._text(node))
            elif node.type == "unary_expression" and has_token(node, "&"):
                operand = node.child_by_field_name("operand")
                if operand is not None and operand.type == "identifier":
                    scope.mark_used(self._text(operand))

    def _check_redeclared(self, targets: Optional[Node], scope: Scope,
                          consult_oracle: bool = True) -> None:
        for ident in target_identifiers(targets):
            name = self._text(ident)
            if name == DISCARD_NAME:
                continue
            if consult_oracle and self._oracle.is_new_binding(ident):
                continue
            finding = scope.try_report(name, Position.of(ident))
            if finding is not None:
                logger.debug("Redundant declaration of %r at %s", name, finding.position)
                self.findings.append(finding)

    # ────────────────────────────────────────────────────────────────
    #  Declarations and assignments
    # ────────────────────────────────────────────────────────────────

    def _var_declaration(self, node: Node, scope: Scope) -> None:
        for spec in _var_specs(node):
            self.mark_used(spec.child_by_field_name("value"), scope)
            names = spec.children_by_field_name("name")
            # var a, b T: which of the names is read later is ambiguous, skip
            if len(names) != 1:
                continue
            ident = names[0]
            scope.declare(self._text(ident), Position.of(ident), ident)

    def _short_var_declaration(self, node: Node, scope: Scope) -> None:
        self.mark_used(node.child_by_field_name("right"), scope)
        self._check_redeclared(node.child_by_field_name("left"), scope)

    def _assignment(self, node: Node, scope: Scope) -> None:
        self.mark_used(node.child_by_field_name("right"), scope)
        self.mark_used(node.child_by_field_name("left"), scope)

    # ────────────────────────────────────────────────────────────────
    #  Control flow
    # ────────────────────────────────────────────────────────────────

    def _process_field(self, node: Node, field_name: str, scope: Scope) -> None:
        child = node.child_by_field_name(field_name)
        if child is not None:
            self.process(child, scope)

    def _if(self, node: Node, scope: Scope) -> None:
        self._process_field(node, "initializer", scope)
        self.mark_used(node.child_by_field_name("condition"), scope)
        consequence = node.child_by_field_name("consequence")
        if consequence is not None:
            self.analyze_block(consequence, scope)
        # else block or else-if
        self._process_field(node, "alternative", scope)

    def _for(self, node: Node, scope: Scope) -> None:
        body = node.child_by_field_name("body")
        for child in node.named_children:
            if child == body or child.type == "comment":
                continue
            if child.type == "for_clause":
                self._process_field(child, "initializer", scope)
                self.mark_used(child.child_by_field_name("condition"), scope)
                self._process_field(child, "update", scope)
            elif child.type == "range_clause":
                self.mark_used(child.child_by_field_name("right"), scope)
                left = child.child_by_field_name("left")
                if has_token(child, ":="):
                    # Range targets are checked without the binding oracle.
                    self._check_redeclared(left, scope, consult_oracle=False)
                else:
                    self.mark_used(left, scope)
            else:
                # for cond { ... }
                self.mark_used(child, scope)
        if body is not None:
            self.analyze_block(body, scope)

    def _switch(self, node: Node, scope: Scope) -> None:
        self._process_field(node, "initializer", scope)
        self.mark_used(node.child_by_field_name("value"), scope)
        self._clauses(node, scope)

    def _type_switch(self, node: Node, scope: Scope) -> None:
        self._process_field(node, "initializer", scope)
        # The guard ``v := x.(type)`` behaves like a := statement.
        self.mark_used(node.child_by_field_name("value"), scope)
        alias = node.child_by_field_name("alias")
        if alias is not None:
            self._check_redeclared(alias, scope)
        self._clauses(node, scope)

    def _select(self, node: Node, scope: Scope) -> None:
        self._clauses(node, scope)

    def _clauses(self, node: Node, scope: Scope) -> None:
        for clause in node.named_children:
            if clause.type.endswith("_case"):
                self.process(clause, scope.child())

    def _case_clause(self, node: Node, scope: Scope) -> None:
        values = node.children_by_field_name("value")
        for value in values:
            self.mark_used(value, scope)
        header = tuple(values) + tuple(node.children_by_field_name("type"))
        for stmt in statements_of(node, header):
            self.process(stmt, scope)

    def _communication_clause(self, node: Node, scope: Scope) -> None:
        comm = node.child_by_field_name("communication")
        header = ()
        if comm is not None:
            self.process(comm, scope)
            header = (comm,)
        for stmt in statements_of(node, header):
            self.process(stmt, scope)

    def _labeled(self, node: Node, scope: Scope) -> None:
        for child in node.named_children:
            if child.type != "label_name":
                self.process(child, scope)

    def _branch(self, node: Node, scope: Scope) -> None:
        pass

    # ────────────────────────────────────────────────────────────────
    #  Simple statements
    # ────────────────────────────────────────────────────────────────

    def _expression_statement(self, node: Node, scope: Scope) -> None:
        """Expression, return, defer, go and ++/-- statements: all reads."""
        for child in node.named_children:
            self.mark_used(child, scope)

    def _send(self, node: Node, scope: Scope) -> None:
        self.mark_used(node.child_by_field_name("channel"), scope)
        self.mark_used(node.child_by_field_name("value"), scope)

    def _receive(self, node: Node, scope: Scope) -> None:
        self.mark_used(node.child_by_field_name("right"), scope)
        left = node.child_by_field_name("left")
        if left is None:
            return
        if has_token(node, ":="):
            self._check_redeclared(left, scope)
        else:
            self.mark_used(left, scope)


def _var_specs(decl: Node) -> List[Node]:
    """var_spec children of a var declaration, grouped or not."""
    specs: List[Node] = []
    for child in decl.named_children:
        if child.type == "var_spec":
            specs.append(child)
        elif child.type == "var_spec_list":
            specs.extend(c for c in child.named_children if c.type == "var_spec")
    return specs
