"""
Go Workspace — runs the redundant-var-decl rule over every Go file of a
project and keeps the findings per file.

Usage:
    ws = GoWorkspace("/path/to/project")
    ws.build()
    for f in ws.get_findings("cmd/main.go"):
        print(format_finding(f))
"""

import os
import logging
from typing import Dict, List, Optional

from redecl.config import LintConfig
from redecl.go_parser import GO_EXTENSION, GoSourceLoader, norm_path
from redecl.rule import RedundantVarDeclRule
from redecl.scope import Finding

logger = logging.getLogger(__name__)


def format_finding(finding: Finding) -> str:
    """``path:line:col: message`` (path omitted when unknown)."""
    location = f"{finding.position.line}:{finding.position.column}"
    if finding.file_path:
        location = f"{finding.file_path}:{location}"
    return f"{location}: {finding.message}"


def format_findings(findings: List[Finding]) -> str:
    return "\n".join(format_finding(f) for f in findings)


class GoWorkspace:
    """Discovers and lints the Go files below a workspace root."""

    def __init__(self, workspace_root: str, config: Optional[LintConfig] = None):
        self.workspace_root = workspace_root
        self.config = config or LintConfig()
        self.loader = GoSourceLoader(workspace_root, self.config.max_file_bytes)
        self.rule = RedundantVarDeclRule(resolve_bindings=self.config.resolve_bindings)
        self._files: List[str] = []
        self._findings: Dict[str, List[Finding]] = {}
        self._skipped: List[str] = []
        self._built = False

    @property
    def is_built(self) -> bool:
        return self._built

    @property
    def files(self) -> List[str]:
        return list(self._files)

    def build(self):
        """Discover Go files and lint each one."""
        self._files = self._discover_files()
        self._findings = {}
        self._skipped = []
        logger.info("GoWorkspace: found %d Go files to lint", len(self._files))

        for rel_path in self._files:
            self.lint_file(rel_path)

        self._built = True
        summary = self.get_summary()
        logger.info(
            "GoWorkspace built: %d findings in %d files (%d skipped)",
            summary["findings"], summary["files_with_findings"], summary["files_skipped"],
        )

    def lint_file(self, file_path: str) -> Optional[List[Finding]]:
        """Lint a single file and store its findings. None if unreadable."""
        rel_path = self._relative(file_path)
        source, tree = self.loader.get_tree(rel_path)
        if tree is None:
            if rel_path not in self._skipped:
                self._skipped.append(rel_path)
            self._findings.pop(rel_path, None)
            return None

        findings = [
            f.model_copy(update={"file_path": rel_path})
            for f in self.rule.apply(tree, source)
        ]
        self._findings[rel_path] = findings
        if rel_path in self._skipped:
            self._skipped.remove(rel_path)
        return findings

    def relint(self, file_path: str) -> Optional[List[Finding]]:
        """Re-parse a file from disk (after an edit) and lint it again."""
        self.loader.invalidate(self._relative(file_path))
        return self.lint_file(file_path)

    def get_findings(self, file_path: str) -> List[Finding]:
        return list(self._findings.get(self._relative(file_path), []))

    def get_all_findings(self) -> List[Finding]:
        findings: List[Finding] = []
        for rel_path in sorted(self._findings):
            findings.extend(self._findings[rel_path])
        return findings

    def get_summary(self) -> Dict:
        return {
            "files_scanned": len(self._files) - len(self._skipped),
            "files_skipped": len(self._skipped),
            "findings": sum(len(v) for v in self._findings.values()),
            "files_with_findings": len([v for v in self._findings.values() if v]),
        }

    # ────────────────────────────────────────────────────────────────
    #  Internal
    # ────────────────────────────────────────────────────────────────

    def _relative(self, file_path: str) -> str:
        if os.path.isabs(file_path):
            file_path = os.path.relpath(file_path, self.workspace_root)
        return norm_path(file_path)

    def _discover_files(self) -> List[str]:
        """Find all Go files in the workspace."""
        excluded = set(self.config.exclude_dirs)
        files = []
        for root, dirs, filenames in os.walk(self.workspace_root):
            dirs[:] = [d for d in dirs if d not in excluded]
            for fname in filenames:
                if not fname.endswith(GO_EXTENSION):
                    continue
                if not self.config.include_tests and fname.endswith("_test.go"):
                    continue
                rel = norm_path(os.path.relpath(os.path.join(root, fname), self.workspace_root))
                files.append(rel)
        return sorted(files)
