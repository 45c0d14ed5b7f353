"""
Fix Engine — turns a redundant-declaration finding into a deletion edit.

The fix deletes the redundant ``var`` line and lets the ``:=`` statement
declare the variable.  It is offered only when that cannot change the
program:

  • the declaration sits on its own line(s)
  • it has no explicit type, so the ``:=`` cannot infer a different one
  • its initializer is a basic literal, and the value the ``:=`` assigns
    to the variable is a literal of the same default type
  • the ``:=`` that triggered the finding is a plain short variable
    declaration in the same statement list as the ``var``

Typed declarations (``var err error``) are the common case and stay
guidance-only: without type information the inferred type of the ``:=``
value is unknown, and it may be a concrete type where the declaration
named an interface.

Otherwise the analysis carries guidance and the reason no edit was made.
"""

import logging
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from tree_sitter import Node

from redecl.go_parser import (
    GoSourceLoader, find_enclosing, find_identifier_at, has_token, node_text, walk_all,
)
from redecl.rule_docs import get_rule
from redecl.scope import RULE_NAME, Finding

logger = logging.getLogger(__name__)

# Initializer nodes that may have side effects
_EFFECT_NODES = {"call_expression"}

# Basic literal node -> default type of the untyped constant
_LITERAL_TYPES = {
    "int_literal": "int",
    "float_literal": "float64",
    "imaginary_literal": "complex128",
    "rune_literal": "rune",
    "interpreted_string_literal": "string",
    "raw_string_literal": "string",
    "true": "bool",
    "false": "bool",
}


@dataclass
class FixAnalysis:
    """Structured fix proposal for one finding."""
    rule_id: str
    name: str
    confidence: str                    # HIGH / LOW
    finding_line: str                  # the flagged declaration
    redeclaration_line: str            # the := statement
    fix_guidance: str
    compliant_example: str
    side_effects: List[str] = field(default_factory=list)
    edits: List[Dict[str, Any]] = field(default_factory=list)  # [{start_byte, end_byte, text}]
    edit_skip_reason: str = ""

    def to_markdown(self) -> str:
        md = f"### Fix Analysis — {self.rule_id} (`{self.name}`)\n"
        md += f"**Confidence**: {self.confidence}\n\n"

        md += "#### Redundant Declaration\n```go\n"
        md += self.finding_line.rstrip() + "\n```\n\n"
        if self.redeclaration_line:
            md += "#### Redeclared By\n```go\n"
            md += self.redeclaration_line.rstrip() + "\n```\n\n"

        if self.edits:
            md += "#### Suggested Fix (Auto-Apply Available)\n"
            for edit in self.edits:
                md += f"- Delete bytes {edit['start_byte']}–{edit['end_byte']}\n"
            md += "\n"
        elif self.edit_skip_reason:
            md += f"#### Auto-Fix Not Available\n{self.edit_skip_reason}\n\n"

        md += "#### Fix Guidance\n"
        md += self.fix_guidance + "\n\n"

        if self.compliant_example:
            md += "#### Compliant Example\n```go\n"
            md += self.compliant_example.rstrip() + "\n```\n\n"

        if self.side_effects:
            md += "#### ⚠ Potential Side Effects\n"
            for se in self.side_effects:
                md += f"- {se}\n"

        return md


class FixEngine:
    def __init__(self, loader: GoSourceLoader):
        self.loader = loader

    def propose_fix(self, finding: Finding) -> FixAnalysis:
        rule = get_rule(RULE_NAME)
        analysis = FixAnalysis(
            rule_id=RULE_NAME,
            name=finding.name,
            confidence="LOW",
            finding_line="",
            redeclaration_line="",
            fix_guidance=rule.fix_strategy,
            compliant_example=rule.compliant,
        )

        source, tree = self.loader.get_tree(finding.file_path)
        if tree is None:
            analysis.edit_skip_reason = f"Cannot read `{finding.file_path}`."
            return analysis

        ident = find_identifier_at(tree, finding.position.line, finding.position.column)
        spec = ident.parent if ident is not None else None
        if spec is None or spec.type != "var_spec":
            analysis.edit_skip_reason = (
                f"No `var {finding.name}` declaration at {finding.position}; "
                "the file may have changed since it was linted."
            )
            return analysis
        decl = find_enclosing(spec, {"var_declaration"})
        analysis.finding_line = _line_of(source, spec)

        redeclaration = self._redeclaration(tree, source, finding)
        if redeclaration is not None:
            analysis.redeclaration_line = _line_of(source, redeclaration)

        reason = self._skip_reason(spec, decl, redeclaration) or _type_reason(
            spec, redeclaration, finding.name, source
        )
        if reason:
            analysis.edit_skip_reason = reason
            return analysis

        specs = [s for s in walk_all(decl) if s.type == "var_spec"]
        target = decl if len(specs) == 1 else spec
        edit = _line_deletion(source, target)
        if edit is None:
            analysis.edit_skip_reason = (
                "The declaration shares its line with other code; remove it by hand."
            )
            return analysis

        trailing = source[target.end_byte:edit["end_byte"]].strip()
        if trailing:
            analysis.side_effects.append(
                f"The trailing comment `{trailing.decode('utf-8', errors='replace')}` is removed too."
            )
        analysis.edits.append(edit)
        analysis.confidence = "HIGH"
        logger.debug("Fix for %r at %s: delete bytes %d-%d", finding.name,
                     finding.position, edit["start_byte"], edit["end_byte"])
        return analysis

    @staticmethod
    def _redeclaration(tree, source: bytes, finding: Finding) -> Optional[Node]:
        if finding.redeclared_at is None:
            return None
        ident = find_identifier_at(
            tree, finding.redeclared_at.line, finding.redeclared_at.column
        )
        if ident is None or node_text(ident, source) != finding.name:
            return None
        return find_enclosing(ident, {
            "short_var_declaration", "range_clause",
            "receive_statement", "type_switch_statement",
        })

    @staticmethod
    def _skip_reason(spec: Node, decl: Optional[Node],
                     redeclaration: Optional[Node]) -> str:
        if decl is None:
            return "Declaration is not part of a `var` statement."
        value = spec.child_by_field_name("value")
        if value is not None:
            for node in walk_all(value):
                if node.type in _EFFECT_NODES or (
                    node.type == "unary_expression" and has_token(node, "<-")
                ):
                    return "The initializer may have side effects (call or channel receive)."
        if redeclaration is None:
            return "The redeclaring `:=` statement could not be located."
        if redeclaration.type != "short_var_declaration":
            return (
                f"The variable is rebound by a `{redeclaration.type}`; deleting the "
                "declaration could change which variable later code refers to."
            )
        if redeclaration.parent != decl.parent:
            return "The `:=` statement is in a different block than the declaration."
        return ""


def _literal_type(node: Optional[Node]) -> Optional[str]:
    """Default type of a (parenthesised) basic literal, else None."""
    while node is not None and node.type == "parenthesized_expression":
        node = node.named_children[0] if node.named_children else None
    if node is None:
        return None
    return _LITERAL_TYPES.get(node.type)


def _expressions(expressions: Optional[Node]) -> List[Node]:
    if expressions is None:
        return []
    if expressions.type == "expression_list":
        return list(expressions.named_children)
    return [expressions]


def _type_reason(spec: Node, redeclaration: Node, name: str, source: bytes) -> str:
    """Why the ``:=`` might give the variable a different type, or ''."""
    if spec.child_by_field_name("type") is not None:
        return (
            "The declaration has an explicit type; the type the `:=` infers may "
            "differ from it (e.g. a concrete type instead of an interface, or "
            "`int` instead of `float64`)."
        )
    declared = _literal_type(next(iter(_expressions(spec.child_by_field_name("value"))), None))
    if declared is None:
        return "The initializer is not a basic literal, so its type cannot be compared."

    targets = _expressions(redeclaration.child_by_field_name("left"))
    values = _expressions(redeclaration.child_by_field_name("right"))
    if len(targets) != len(values):
        return "The `:=` assigns from a multi-value expression whose types are unknown."
    for target, value in zip(targets, values):
        if target.type == "identifier" and node_text(target, source) == name:
            if _literal_type(value) == declared:
                return ""
            return (
                f"The `:=` assigns a value whose type may differ from `{declared}`, "
                "the type of the declaration."
            )
    return "The variable was not found on the left of the `:=`."


def _line_of(source: bytes, node: Node) -> str:
    start = source.rfind(b"\n", 0, node.start_byte) + 1
    end = source.find(b"\n", node.start_byte)
    if end == -1:
        end = len(source)
    return source[start:end].decode("utf-8", errors="replace")


def _line_deletion(source: bytes, node: Node) -> Optional[Dict[str, Any]]:
    """Edit deleting the whole lines spanned by ``node``, or None if they hold other code."""
    start = source.rfind(b"\n", 0, node.start_byte) + 1
    if source[start:node.start_byte].strip():
        return None
    newline = source.find(b"\n", node.end_byte)
    line_end = len(source) if newline == -1 else newline
    rest = source[node.end_byte:line_end].strip()
    if rest and not rest.startswith(b"//"):
        return None
    end = line_end if newline == -1 else newline + 1
    return {"start_byte": start, "end_byte": end, "text": ""}
