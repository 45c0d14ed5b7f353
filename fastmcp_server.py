"""
Redundant Var Decl Agent — MCP Server

Exposes the redundant-var-decl Go check to coding agents via the Model
Context Protocol:

  1.  load_workspace  — lint every .go file below a workspace root
  2.  list_findings   — list findings for a file (shows fix status)
  3.  lint_file       — re-lint a single file from disk
  4.  lint_source     — lint a Go snippet passed inline
  5.  analyze_finding — code context + enclosing function + references
  6.  explain_rule    — rule rationale, examples and known limitations
  7.  propose_fix     — AST-checked fix proposal for one finding
  8.  apply_fix       — delete the redundant declaration + mark status
  9.  verify_fix      — re-lint to confirm a finding is gone
 10.  fix_all         — apply every safe fix in a file, then verify
 11.  summary_report  — workspace statistics
"""

from mcp.server.fastmcp import FastMCP
import logging
import os
import sys

# Ensure the redecl package is importable when run as a script
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from redecl.batch_fixer import BatchFixer
from redecl.config import find_config, load_config
from redecl.context_provider import ContextProvider
from redecl.fix_engine import FixEngine
from redecl.rule import RedundantVarDeclRule
from redecl.rule_docs import format_rule_explanation
from redecl.scope import RULE_NAME
from redecl.workspace import GoWorkspace, format_finding, format_findings

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("Redundant Var Decl Agent")

workspace = None
context_provider = None
fix_engine = None
batch_fixer = BatchFixer()

# ── Finding status tracking ──
# Key:   (normalized_file_path, line_number, variable_name)
# Value: "pending" | "fixed" | "verified" | "failed"
_finding_status = {}


def _fkey(file_path: str, line: int, name: str) -> tuple:
    """Canonical key for the finding status map."""
    return (file_path.replace("\\", "/"), line, name)


def _get_status(file_path: str, line: int, name: str) -> str:
    return _finding_status.get(_fkey(file_path, line, name), "pending")


def _set_status(file_path: str, line: int, name: str, status: str):
    _finding_status[_fkey(file_path, line, name)] = status


_NOT_LOADED = "Error: No workspace loaded. Call load_workspace first."


# ═══════════════════════════════════════════════════════════════════════
#  Finding Lookup Helper
# ═══════════════════════════════════════════════════════════════════════

def _find_finding(file_path: str, line_number: int):
    """Find a finding with progressive fallback.

    Returns (finding, message).  The finding is None when nothing matched.

    Strategy:
      1. Exact match: file + line
      2. Same file, closest line — handles off-by-one
      3. Basename match in a different directory
    """
    norm_path = file_path.replace("\\", "/")

    findings = workspace.get_findings(norm_path)
    target = next((f for f in findings if f.line == line_number), None)
    if target:
        return target, None

    if findings:
        closest = min(findings, key=lambda f: abs(f.line - line_number))
        lines_str = ", ".join(str(f.line) for f in findings[:10])
        hint = (
            f"No finding at line {line_number} in `{norm_path}`, "
            f"but found {len(findings)} finding(s) at line(s): {lines_str}.\n"
            f"**Closest match:** line {closest.line} — using that instead."
        )
        return closest, hint

    basename = os.path.basename(norm_path)
    same_name = [
        f for f in workspace.get_all_findings()
        if os.path.basename(f.file_path) == basename
    ]
    if same_name:
        f = same_name[0]
        hint = (
            f"No finding in `{norm_path}`, but found one in "
            f"`{f.file_path}:{f.line}` (same basename).\n"
            f"**Using that match instead.**"
        )
        return f, hint

    return None, (
        f"No `{RULE_NAME}` finding in `{norm_path}`. "
        "Check the path or run `list_findings`."
    )


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1 — Load Workspace
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def load_workspace(workspace_root: str, config_path: str = "") -> str:
    """
    Lints every Go file below the workspace root for redundant `var`
    declarations that are rebound by `:=` before being read.

    Args:
        workspace_root: Root directory of the Go project.
        config_path:    Optional JSON config file.  Defaults to
                        `.redecl.json` in the workspace root if present.
    """
    global workspace, context_provider, fix_engine, _finding_status

    if not os.path.isdir(workspace_root):
        return f"Error: Workspace root not found at {workspace_root}"

    try:
        _finding_status = {}  # reset on new workspace load

        config = load_config(config_path or find_config(workspace_root))
        workspace = GoWorkspace(workspace_root, config)
        workspace.build()

        context_provider = ContextProvider(workspace.loader)
        fix_engine = FixEngine(workspace.loader)

        summary = workspace.get_summary()
        binding_mode = "enabled" if config.resolve_bindings else "disabled (fail-open)"
        return (
            f"Successfully linted workspace. Found {summary['findings']} redundant "
            f"declaration(s) in {summary['files_with_findings']} file(s).\n"
            f"Files scanned: {summary['files_scanned']}, skipped: {summary['files_skipped']}.\n"
            f"Binding resolution: {binding_mode}."
        )
    except Exception as e:
        logger.exception("load_workspace failed")
        return f"Error loading workspace: {e}"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2 — List Findings
# ═══════════════════════════════════════════════════════════════════════

_STATUS_BADGE = {
    "pending": "",
    "fixed": " [FIXED]",
    "verified": " [VERIFIED]",
    "failed": " [FIX FAILED]",
}


@mcp.tool()
def list_findings(file_path: str) -> str:
    """
    Lists all redundant declarations found in a specific file.

    Args:
        file_path: Relative path of the file in the workspace.
    """
    if workspace is None:
        return _NOT_LOADED

    findings = workspace.get_findings(file_path)
    if not findings:
        return f"No findings for {file_path}"

    result = f"**{len(findings)} finding(s) in {file_path}:**\n\n"
    for f in findings:
        badge = _STATUS_BADGE.get(_get_status(f.file_path, f.line, f.name), "")
        redeclared = f" (redeclared at line {f.redeclared_at.line})" if f.redeclared_at else ""
        result += f"- Line {f.line}, col {f.position.column}{badge}: {f.message}{redeclared}\n"
    return result


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3 / 4 — Lint on demand
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def lint_file(file_path: str) -> str:
    """
    Re-reads a file from disk and lints it again.

    Args:
        file_path: Relative path of the file in the workspace.
    """
    if workspace is None:
        return _NOT_LOADED

    findings = workspace.relint(file_path)
    if findings is None:
        return f"Error: Cannot read or parse `{file_path}`."
    if not findings:
        return f"`{file_path}`: no redundant declarations."
    return f"```\n{format_findings(findings)}\n```"


@mcp.tool()
def lint_source(source: str, resolve_bindings: bool = True) -> str:
    """
    Lints a Go source snippet (a complete file, including the package clause).

    Args:
        source:           Go source text.
        resolve_bindings: Resolve whether each := target is a new variable.
                          When False every target is treated as a reuse.
    """
    try:
        findings = RedundantVarDeclRule(resolve_bindings=resolve_bindings).apply_source(source)
    except Exception as e:
        return f"Error linting source: {e}"
    if not findings:
        return "No redundant declarations."
    return "\n".join(format_finding(f) for f in findings)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 5 — Analyze Finding
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def analyze_finding(file_path: str, line_number: int) -> str:
    """
    Returns the code context around a finding, the enclosing function, and
    every line in the file that mentions the variable.

    Args:
        file_path:   The file where the finding was reported.
        line_number: The line of the redundant declaration.
    """
    if workspace is None or context_provider is None:
        return _NOT_LOADED

    target, lookup_msg = _find_finding(file_path, line_number)
    if target is None:
        return lookup_msg

    context = context_provider.get_code_context(target.file_path, target.line)
    enclosing_fn = context_provider.get_enclosing_function(target.file_path, target.line)
    uses = context_provider.find_symbol_uses(target.file_path, target.name)
    use_lines = "\n".join(f"- line {ln}: `{text.strip()}`" for ln, text in uses[:20])

    analysis = f"""## Finding Analysis

| Field | Value |
|-------|-------|
| **Rule** | {target.rule} |
| **File** | `{target.file_path}:{target.line}:{target.position.column}` |
| **Variable** | `{target.name}` |
| **Redeclared at** | {target.redeclared_at or 'unknown'} |
| **Function** | `{enclosing_fn or 'function literal'}` |
| **Message** | {target.message} |

### Code Context
```go
{context}
```

### Mentions of `{target.name}`
{use_lines or 'None.'}
"""
    if lookup_msg:
        analysis = f"> **Note:** {lookup_msg}\n\n{analysis}"
    return analysis


# ═══════════════════════════════════════════════════════════════════════
#  Tool 6 — Explain Rule
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def explain_rule() -> str:
    """
    Returns the rule explanation: rationale, compliant/non-compliant
    examples, how to fix, and known limitations.
    """
    return format_rule_explanation(RULE_NAME)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 7 — Propose Fix
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def propose_fix(file_path: str, line_number: int) -> str:
    """
    Returns an AST-checked fix proposal for a finding.  An automatic edit is
    offered only when deleting the declaration cannot change behaviour.

    Args:
        file_path:   The file where the finding was reported.
        line_number: The line of the redundant declaration.
    """
    if workspace is None or fix_engine is None:
        return _NOT_LOADED

    target, lookup_msg = _find_finding(file_path, line_number)
    if target is None:
        return lookup_msg

    result = fix_engine.propose_fix(target).to_markdown()
    if lookup_msg:
        result = f"> **Note:** {lookup_msg}\n\n{result}"
    return result


# ═══════════════════════════════════════════════════════════════════════
#  Tool 8 — Apply Fix
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def apply_fix(file_path: str, line_number: int) -> str:
    """
    Deletes a redundant declaration when the fix engine considers it safe.

    After writing, the file is re-parsed (the edit is refused if it would
    introduce parse errors) and re-linted.

    Args:
        file_path:   The file path.
        line_number: The line of the redundant declaration.
    """
    if workspace is None or fix_engine is None:
        return _NOT_LOADED

    target, lookup_msg = _find_finding(file_path, line_number)
    if target is None:
        return lookup_msg
    prefix = f"> **Note:** {lookup_msg}\n\n" if lookup_msg else ""

    analysis = fix_engine.propose_fix(target)
    if not analysis.edits:
        reason = analysis.edit_skip_reason or "No specific reason available."
        return (f"{prefix}Auto-fix not available.\n\n"
                f"**Reason:** {reason}\n\n"
                f"**Guidance:**\n{analysis.fix_guidance}")

    try:
        abs_path = workspace.loader.resolve(target.file_path)
        summary = batch_fixer.apply_fixes_by_file({abs_path: analysis.edits})
        applied = summary.get(abs_path, 0)
        if applied == 0:
            return f"{prefix}Error: The edit was rejected (bounds, overlap or parse errors)."

        workspace.relint(target.file_path)
        _set_status(target.file_path, target.line, target.name, "fixed")

        result = f"{prefix}Removed the redundant declaration of `{target.name}` from `{target.file_path}`."
        if analysis.side_effects:
            result += "\n\n**Side effects to review:**\n"
            for se in analysis.side_effects:
                result += f"- {se}\n"
        result += (
            "\n\n**Status:** marked as `fixed`. "
            "Run `verify_fix` to confirm the finding is resolved."
        )
        return result
    except Exception as e:
        return f"Error applying fix: {e}"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 9 — Verify Fix
# ═══════════════════════════════════════════════════════════════════════

def _verify_finding(file_path: str, line_number: int, name: str) -> tuple:
    """Internal: re-lint and check whether the finding is still reported.

    Returns (is_resolved: bool, detail: str).
    """
    findings = workspace.relint(file_path)
    if findings is None:
        return False, f"Cannot read or parse `{file_path}`."
    still = [f for f in findings if f.name == name and f.line == line_number]
    if still:
        return False, f"`{name}` is still reported at line {line_number}."
    return True, f"No redundant declaration of `{name}` at line {line_number}."


@mcp.tool()
def verify_fix(file_path: str, line_number: int, name: str) -> str:
    """
    Re-lints the (possibly modified) file and checks whether the finding for
    `name` at `line_number` is gone.  Updates the finding status.

    Args:
        file_path:   The file path.
        line_number: The original line of the redundant declaration.
        name:        The variable name.
    """
    if workspace is None:
        return _NOT_LOADED

    resolved, detail = _verify_finding(file_path, line_number, name)
    _set_status(file_path, line_number, name, "verified" if resolved else "failed")
    verdict = "RESOLVED" if resolved else "STILL PRESENT"
    return f"**{verdict}** — {detail}"


# ═══════════════════════════════════════════════════════════════════════
#  Tool 10 — Fix All
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def fix_all(file_path: str, dry_run: bool = False) -> str:
    """
    Applies every safe fix in a file in one pass, then re-lints it.

    Returns a markdown summary table.

    Args:
        file_path: The file to process.
        dry_run:   If True, analyse and report but do not write changes.
    """
    if workspace is None or fix_engine is None:
        return _NOT_LOADED

    findings = workspace.get_findings(file_path)
    if not findings:
        return f"No findings for `{file_path}`."

    results = []  # [(name, line, status, detail)]
    edits = []
    for f in findings:
        if _get_status(f.file_path, f.line, f.name) == "verified":
            results.append((f.name, f.line, "skipped", "Already verified."))
            continue
        analysis = fix_engine.propose_fix(f)
        if not analysis.edits:
            results.append((f.name, f.line, "no-fix", analysis.edit_skip_reason))
            continue
        edits.extend(analysis.edits)
        results.append((f.name, f.line, "dry-run" if dry_run else "fixed",
                        f"{len(analysis.edits)} edit(s)."))

    if edits:
        abs_path = workspace.loader.resolve(file_path)
        applied = batch_fixer.apply_fixes_by_file({abs_path: edits}, dry_run=dry_run).get(abs_path, 0)
        if applied == 0:
            results = [
                (n, ln, "error" if status in ("fixed", "dry-run") else status, detail)
                for n, ln, status, detail in results
            ]
        elif not dry_run:
            workspace.relint(file_path)
            for name, line, status, _ in results:
                if status == "fixed":
                    _set_status(file_path, line, name, "fixed")

    counts = {}
    for _, _, status, _ in results:
        counts[status] = counts.get(status, 0) + 1

    summary = f"## Fix All — `{file_path}`\n\n"
    summary += "| Outcome | Count |\n|---------|-------|\n"
    for status in sorted(counts):
        summary += f"| {status} | {counts[status]} |\n"
    summary += "\n| Variable | Line | Status | Detail |\n"
    summary += "|----------|------|--------|--------|\n"
    for name, line, status, detail in results:
        short = detail[:80] + "..." if len(detail) > 80 else detail
        summary += f"| `{name}` | {line} | **{status}** | {short} |\n"
    return summary


# ═══════════════════════════════════════════════════════════════════════
#  Tool 11 — Summary Report
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def summary_report() -> str:
    """Returns workspace statistics and the files with the most findings."""
    if workspace is None:
        return _NOT_LOADED

    summary = workspace.get_summary()
    per_file = {}
    for f in workspace.get_all_findings():
        per_file[f.file_path] = per_file.get(f.file_path, 0) + 1

    report = f"# {RULE_NAME} Report\n\n"
    report += "| Metric | Value |\n|--------|-------|\n"
    for key, value in summary.items():
        report += f"| {key.replace('_', ' ')} | {value} |\n"

    if per_file:
        report += "\n| File | Findings |\n|------|----------|\n"
        for path, count in sorted(per_file.items(), key=lambda kv: (-kv[1], kv[0]))[:20]:
            report += f"| `{path}` | {count} |\n"
    return report


if __name__ == "__main__":
    # stdout carries the MCP protocol; logs go to stderr
    logging.basicConfig(level=logging.INFO, stream=sys.stderr,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    try:
        if hasattr(mcp, "_tool_manager") and hasattr(mcp._tool_manager, "_tools"):
            tools = mcp._tool_manager._tools.keys()
            logger.info("Redundant Var Decl Agent starting with %d tools: %s", len(tools), list(tools))
    except Exception as e:
        logger.debug("Cannot inspect tools: %s", e)

    mcp.run()
