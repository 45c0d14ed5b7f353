"""
Scope tracking for the redundant-var-decl check.

A Scope maps variable names to DeclarationRecords.  Child scopes copy the
mapping but share the records, so marking a record used in an inner block is
visible everywhere the record is reachable, while a new declaration in the
inner block only replaces the inner entry.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict
from tree_sitter import Node

RULE_NAME = "redundant-var-decl"
DISCARD_NAME = "_"
FINDING_CONFIDENCE = 1.0
_MESSAGE = "redundant declaration of '{name}'; it's redeclared via := assignment"


class Position(BaseModel):
    """1-based line and byte column, the way Go reports positions."""
    model_config = ConfigDict(frozen=True)

    line: int
    column: int

    @classmethod
    def of(cls, node: Node) -> "Position":
        return cls(line=node.start_point[0] + 1, column=node.start_point[1] + 1)

    def __str__(self):
        return f"{self.line}:{self.column}"


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    message: str
    position: Position
    confidence: float = FINDING_CONFIDENCE
    rule: str = RULE_NAME
    redeclared_at: Optional[Position] = None
    file_path: str = ""

    @classmethod
    def redundant(cls, name: str, position: Position,
                  redeclared_at: Optional[Position] = None) -> "Finding":
        return cls(
            name=name,
            message=_MESSAGE.format(name=name),
            position=position,
            redeclared_at=redeclared_at,
        )

    @property
    def line(self) -> int:
        return self.position.line


@dataclass(eq=False)
class DeclarationRecord:
    """One tracked single-name ``var`` declaration."""
    name: str
    position: Position
    node: Optional[Node] = None     # the declared identifier
    used: bool = False
    redefined: bool = False

    def mark_used(self) -> None:
        self.used = True


class Scope:
    """Snapshot of the declarations visible in one lexical block."""

    def __init__(self, entries: Optional[Dict[str, DeclarationRecord]] = None):
        self._entries: Dict[str, DeclarationRecord] = dict(entries) if entries else {}

    def child(self) -> "Scope":
        return Scope(self._entries)

    def declare(self, name: str, position: Position,
                node: Optional[Node] = None) -> Optional[DeclarationRecord]:
        """Register a declaration in this scope only; ``_`` is never tracked."""
        if name == DISCARD_NAME:
            return None
        record = DeclarationRecord(name=name, position=position, node=node)
        self._entries[name] = record
        return record

    def lookup(self, name: str) -> Optional[DeclarationRecord]:
        return self._entries.get(name)

    def mark_used(self, name: str) -> None:
        record = self._entries.get(name)
        if record is not None:
            record.mark_used()

    def try_report(self, name: str,
                   redeclared_at: Optional[Position] = None) -> Optional[Finding]:
        """Report ``name`` if it is tracked, still unused and not yet reported."""
        if name == DISCARD_NAME:
            return None
        record = self._entries.get(name)
        if record is None or record.used or record.redefined:
            return None
        record.redefined = True
        return Finding.redundant(name, record.position, redeclared_at)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
