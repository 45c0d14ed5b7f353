"""
Workspace Tests — file discovery, configuration, context lookup and rule docs.
"""

import json
import os
import shutil
import sys
import tempfile
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from redecl.config import CONFIG_FILE_NAME, LintConfig, find_config, load_config
from redecl.context_provider import ContextProvider
from redecl.go_parser import GoSourceLoader
from redecl.rule_docs import format_rule_explanation, get_rule
from redecl.scope import RULE_NAME, Finding, Position
from redecl.workspace import GoWorkspace, format_finding, format_findings

REDUNDANT = (
    "package main\n"
    "\n"
    "func run() {\n"
    "\tvar err error\n"
    "\tresult, err := get()\n"
    "\tprintln(result, err)\n"
    "}\n"
)

CLEAN = (
    "package main\n"
    "\n"
    "func clean() {\n"
    "\tresult, err := get()\n"
    "\tprintln(result, err)\n"
    "}\n"
)


def write(root, rel_path, content):
    full = os.path.join(root, *rel_path.split("/"))
    os.makedirs(os.path.dirname(full), exist_ok=True)
    mode = "wb" if isinstance(content, bytes) else "w"
    with open(full, mode) as f:
        f.write(content)
    return full


class TempDirTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)


# ═══════════════════════════════════════════════════════════════════════
#  Configuration
# ═══════════════════════════════════════════════════════════════════════

class TestLoadConfig(TempDirTestCase):

    def test_defaults(self):
        config = load_config(None)
        self.assertTrue(config.resolve_bindings)
        self.assertTrue(config.include_tests)
        self.assertIn("vendor", config.exclude_dirs)

    def test_missing_file(self):
        self.assertEqual(load_config(os.path.join(self.tmp, "nope.json")), LintConfig())

    def test_camel_case_keys(self):
        path = write(self.tmp, CONFIG_FILE_NAME, json.dumps({
            "resolveBindings": False,
            "includeTests": False,
            "exclude_dirs": ["third_party"],
            "maxFileBytes": 1234,
        }))
        config = load_config(path)
        self.assertFalse(config.resolve_bindings)
        self.assertFalse(config.include_tests)
        self.assertEqual(config.exclude_dirs, ["third_party"])
        self.assertEqual(config.max_file_bytes, 1234)

    def test_invalid_json(self):
        path = write(self.tmp, CONFIG_FILE_NAME, "{not json")
        self.assertEqual(load_config(path), LintConfig())

    def test_not_an_object(self):
        path = write(self.tmp, CONFIG_FILE_NAME, "[1, 2]")
        self.assertEqual(load_config(path), LintConfig())

    def test_invalid_values(self):
        path = write(self.tmp, CONFIG_FILE_NAME, json.dumps({"max_file_bytes": "lots"}))
        self.assertEqual(load_config(path), LintConfig())

    def test_find_config(self):
        self.assertIsNone(find_config(self.tmp))
        path = write(self.tmp, CONFIG_FILE_NAME, "{}")
        self.assertEqual(find_config(self.tmp), path)


# ═══════════════════════════════════════════════════════════════════════
#  Workspace
# ═══════════════════════════════════════════════════════════════════════

class TestGoWorkspace(TempDirTestCase):

    def setUp(self):
        super().setUp()
        write(self.tmp, "cmd/main.go", REDUNDANT)
        write(self.tmp, "pkg/clean.go", CLEAN)
        write(self.tmp, "pkg/clean_test.go", REDUNDANT)
        write(self.tmp, "vendor/dep/dep.go", REDUNDANT)
        write(self.tmp, "README.md", "# not go\n")

    def test_discovery(self):
        ws = GoWorkspace(self.tmp)
        self.assertFalse(ws.is_built)
        ws.build()
        self.assertTrue(ws.is_built)
        self.assertEqual(ws.files, ["cmd/main.go", "pkg/clean.go", "pkg/clean_test.go"])

    def test_exclude_tests(self):
        ws = GoWorkspace(self.tmp, LintConfig(include_tests=False))
        ws.build()
        self.assertEqual(ws.files, ["cmd/main.go", "pkg/clean.go"])

    def test_findings_carry_relative_path(self):
        ws = GoWorkspace(self.tmp)
        ws.build()
        findings = ws.get_findings("cmd/main.go")
        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].file_path, "cmd/main.go")
        self.assertEqual(ws.get_findings("pkg/clean.go"), [])
        self.assertEqual(
            [f.file_path for f in ws.get_all_findings()],
            ["cmd/main.go", "pkg/clean_test.go"],
        )

    def test_absolute_and_backslash_paths(self):
        ws = GoWorkspace(self.tmp)
        ws.build()
        self.assertEqual(len(ws.get_findings(os.path.join(self.tmp, "cmd", "main.go"))), 1)
        self.assertEqual(len(ws.get_findings("cmd\\main.go")), 1)

    def test_summary(self):
        ws = GoWorkspace(self.tmp)
        ws.build()
        self.assertEqual(ws.get_summary(), {
            "files_scanned": 3,
            "files_skipped": 0,
            "findings": 2,
            "files_with_findings": 2,
        })

    def test_binary_and_oversized_files_are_skipped(self):
        write(self.tmp, "pkg/blob.go", b"package x\x00\x00")
        write(self.tmp, "pkg/huge.go", CLEAN + "// padding\n" * 200)
        ws = GoWorkspace(self.tmp, LintConfig(max_file_bytes=1000))
        ws.build()
        summary = ws.get_summary()
        self.assertEqual(summary["files_skipped"], 2)
        self.assertEqual(summary["files_scanned"], 3)
        self.assertIsNone(ws.lint_file("pkg/blob.go"))

    def test_relint_after_edit(self):
        ws = GoWorkspace(self.tmp)
        ws.build()
        write(self.tmp, "cmd/main.go", CLEAN)
        self.assertEqual(len(ws.get_findings("cmd/main.go")), 1)
        self.assertEqual(ws.relint("cmd/main.go"), [])
        self.assertEqual(ws.get_findings("cmd/main.go"), [])

    def test_deleted_file(self):
        ws = GoWorkspace(self.tmp)
        ws.build()
        os.remove(os.path.join(self.tmp, "cmd", "main.go"))
        self.assertIsNone(ws.relint("cmd/main.go"))
        self.assertEqual(ws.get_summary()["files_skipped"], 1)


class TestFormatting(unittest.TestCase):

    def test_format_finding(self):
        finding = Finding.redundant("err", Position(line=4, column=6))
        self.assertEqual(
            format_finding(finding),
            "4:6: redundant declaration of 'err'; it's redeclared via := assignment",
        )
        located = finding.model_copy(update={"file_path": "cmd/main.go"})
        self.assertTrue(format_finding(located).startswith("cmd/main.go:4:6: "))
        self.assertEqual(len(format_findings([finding, located]).splitlines()), 2)


class TestSourceLoader(TempDirTestCase):

    def test_cache_and_invalidate(self):
        write(self.tmp, "a.go", CLEAN)
        loader = GoSourceLoader(self.tmp)
        source, tree = loader.get_tree("a.go")
        self.assertEqual(source, CLEAN.encode("utf-8"))
        self.assertIs(loader.get_tree("a.go")[1], tree)
        loader.invalidate("a.go")
        self.assertIsNot(loader.get_tree("a.go")[1], tree)

    def test_missing(self):
        self.assertEqual(GoSourceLoader(self.tmp).get_tree("none.go"), (None, None))


# ═══════════════════════════════════════════════════════════════════════
#  Context and rule documentation
# ═══════════════════════════════════════════════════════════════════════

class TestContextProvider(TempDirTestCase):

    def setUp(self):
        super().setUp()
        write(self.tmp, "main.go", REDUNDANT + "\nfunc (s *Server) Close() {\n\ts.stop()\n}\n")
        self.ctx = ContextProvider(GoSourceLoader(self.tmp))

    def test_code_context(self):
        context = self.ctx.get_code_context("main.go", 4, context_lines=1)
        self.assertEqual(context, "func run() {\n\tvar err error\n\tresult, err := get()\n")

    def test_enclosing_function(self):
        self.assertEqual(self.ctx.get_enclosing_function("main.go", 5), "func run()")
        self.assertEqual(
            self.ctx.get_enclosing_function("main.go", 10), "func (s *Server) Close()"
        )
        self.assertIsNone(self.ctx.get_enclosing_function("main.go", 1))

    def test_symbol_uses(self):
        uses = self.ctx.find_symbol_uses("main.go", "err")
        self.assertEqual([ln for ln, _ in uses], [4, 5, 6])

    def test_unreadable_file(self):
        self.assertTrue(self.ctx.get_code_context("none.go", 1).startswith("Error"))
        self.assertEqual(self.ctx.find_symbol_uses("none.go", "err"), [])


class TestRuleDocs(unittest.TestCase):

    def test_rule_registered(self):
        rule = get_rule(RULE_NAME)
        self.assertIsNotNone(rule)
        self.assertTrue(rule.limitations)

    def test_explanation(self):
        text = format_rule_explanation(RULE_NAME)
        self.assertIn("### Non-Compliant Example", text)
        self.assertIn("```go", text)
        self.assertIn("### Known Limitations", text)
        self.assertIn("Reads are matched by name", text)

    def test_unknown_rule(self):
        self.assertEqual(format_rule_explanation("nope"), "Unknown rule: nope")


if __name__ == "__main__":
    unittest.main()
