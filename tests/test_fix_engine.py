"""
Fix Engine Tests — fix proposals, edit application and re-lint after fixing.
"""

import os
import shutil
import sys
import tempfile
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from redecl.batch_fixer import BatchFixer
from redecl.config import LintConfig
from redecl.fix_engine import FixEngine
from redecl.workspace import GoWorkspace


class FixTestCase(unittest.TestCase):
    config = LintConfig()

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def write(self, body: str, name: str = "main.go") -> str:
        source = f"package main\n\nfunc run() {{\n{body}\n}}\n"
        with open(os.path.join(self.tmp, name), "w", encoding="utf-8") as f:
            f.write(source)
        return name

    def read(self, name: str = "main.go") -> str:
        with open(os.path.join(self.tmp, name), encoding="utf-8") as f:
            return f.read()

    def analyse(self, body: str):
        name = self.write(body)
        ws = GoWorkspace(self.tmp, self.config)
        ws.build()
        findings = ws.get_findings(name)
        self.assertEqual(len(findings), 1, findings)
        return ws, findings[0], FixEngine(ws.loader).propose_fix(findings[0])


class TestProposeFix(FixTestCase):

    def test_simple_deletion(self):
        ws, finding, analysis = self.analyse(
            "\tvar n = 0\n"
            "\tn, err := 1, check()\n"
            "\tprintln(n, err)"
        )
        self.assertEqual(analysis.confidence, "HIGH")
        self.assertEqual(analysis.finding_line.strip(), "var n = 0")
        self.assertEqual(analysis.redeclaration_line.strip(), "n, err := 1, check()")
        self.assertEqual(len(analysis.edits), 1)
        self.assertEqual(analysis.edits[0]["text"], "")
        self.assertIn("Auto-Apply Available", analysis.to_markdown())

    def test_call_in_initializer(self):
        _, _, analysis = self.analyse(
            "\tvar x = compute()\n"
            "\tx, y := get()\n"
            "\tprintln(x, y)"
        )
        self.assertEqual(analysis.edits, [])
        self.assertIn("side effects", analysis.edit_skip_reason)
        self.assertIn("Auto-Fix Not Available", analysis.to_markdown())

    def test_channel_receive_in_initializer(self):
        _, _, analysis = self.analyse(
            "\tvar x = <-ch\n"
            "\tx, y := get()\n"
            "\tprintln(x, y)"
        )
        self.assertEqual(analysis.edits, [])
        self.assertIn("side effects", analysis.edit_skip_reason)

    def test_same_literal_type_is_safe(self):
        _, _, analysis = self.analyse(
            "\tvar s = \"a\"\n"
            "\tt, s := 1, `b`\n"
            "\tprintln(s, t)"
        )
        self.assertEqual(len(analysis.edits), 1)

    def test_range_redeclaration(self):
        _, _, analysis = self.analyse(
            "\tvar k string\n"
            "\tfor k, v := range m {\n"
            "\t\tprintln(k, v)\n"
            "\t}"
        )
        self.assertEqual(analysis.edits, [])
        self.assertIn("range_clause", analysis.edit_skip_reason)

    def test_shared_line(self):
        _, _, analysis = self.analyse(
            "\tvar x = 1; x, y := 2, 3\n"
            "\tprintln(x, y)"
        )
        self.assertEqual(analysis.edits, [])
        self.assertIn("shares its line", analysis.edit_skip_reason)

    def test_trailing_comment_is_a_side_effect(self):
        _, _, analysis = self.analyse(
            "\tvar n = 0 // filled below\n"
            "\tn, err := 1, check()\n"
            "\tprintln(n, err)"
        )
        self.assertEqual(len(analysis.edits), 1)
        self.assertEqual(len(analysis.side_effects), 1)
        self.assertIn("// filled below", analysis.side_effects[0])

    def test_stale_finding(self):
        ws, finding, _ = self.analyse(
            "\tvar n = 0\n"
            "\tn, err := 1, check()\n"
            "\tprintln(n, err)"
        )
        self.write("\tprintln(1)")
        ws.loader.invalidate(finding.file_path)
        analysis = FixEngine(ws.loader).propose_fix(finding)
        self.assertEqual(analysis.edits, [])
        self.assertIn("may have changed", analysis.edit_skip_reason)


class TestTypePreservation(FixTestCase):
    """Deleting the declaration must not change the variable's type."""

    def assertNoEdit(self, body: str, reason: str):
        _, _, analysis = self.analyse(body)
        self.assertEqual(analysis.edits, [])
        self.assertEqual(analysis.confidence, "LOW")
        self.assertIn(reason, analysis.edit_skip_reason)

    def test_float_declaration_with_int_literals(self):
        # x/2 would become integer division
        self.assertNoEdit(
            "\tvar x float64\n"
            "\tx, y := 3, 4\n"
            "\tprintln(x/2, y)",
            "explicit type",
        )

    def test_interface_declaration(self):
        self.assertNoEdit(
            "\tvar err error\n"
            "\tn, err := parse()\n"
            "\tprintln(n, err)",
            "explicit type",
        )

    def test_typed_declaration_with_initializer(self):
        self.assertNoEdit(
            "\tvar x int = 10\n"
            "\tx, y := 20, 30\n"
            "\tprintln(x, y)",
            "explicit type",
        )

    def test_different_literal_kind(self):
        self.assertNoEdit(
            "\tvar x = 1.5\n"
            "\tx, y := 3, 4\n"
            "\tprintln(x, y)",
            "`float64`",
        )

    def test_non_literal_initializer(self):
        self.assertNoEdit(
            "\tvar x = limit\n"
            "\tx, y := 3, 4\n"
            "\tprintln(x, y)",
            "not a basic literal",
        )

    def test_multi_value_call(self):
        self.assertNoEdit(
            "\tvar x = 0\n"
            "\tx, err := get()\n"
            "\tprintln(x, err)",
            "multi-value",
        )

    def test_markdown_keeps_guidance(self):
        _, _, analysis = self.analyse(
            "\tvar err error\n"
            "\tn, err := parse()\n"
            "\tprintln(n, err)"
        )
        md = analysis.to_markdown()
        self.assertIn("Auto-Fix Not Available", md)
        self.assertIn("#### Fix Guidance", md)


class TestFailOpenFix(FixTestCase):
    config = LintConfig(resolve_bindings=False)

    def test_different_block(self):
        _, _, analysis = self.analyse(
            "\tvar x int\n"
            "\tif cond() {\n"
            "\t\tx, y := get()\n"
            "\t\tprintln(x, y)\n"
            "\t}"
        )
        self.assertEqual(analysis.edits, [])
        self.assertIn("different block", analysis.edit_skip_reason)


class TestApplyFix(FixTestCase):

    def test_apply_and_relint(self):
        ws, finding, analysis = self.analyse(
            "\tvar n = 0\n"
            "\tn, err := 1, check()\n"
            "\tprintln(n, err)"
        )
        path = ws.loader.resolve(finding.file_path)
        summary = BatchFixer().apply_fixes_by_file({path: analysis.edits})
        self.assertEqual(summary[path], 1)
        self.assertEqual(
            self.read(),
            "package main\n\nfunc run() {\n\tn, err := 1, check()\n\tprintln(n, err)\n}\n",
        )
        self.assertEqual(ws.relint(finding.file_path), [])

    def test_grouped_declaration_keeps_other_spec(self):
        ws, finding, analysis = self.analyse(
            "\tvar (\n"
            "\t\tx = 0\n"
            "\t\tname string\n"
            "\t)\n"
            "\tx, err := 1, check()\n"
            "\tprintln(x, name, err)"
        )
        path = ws.loader.resolve(finding.file_path)
        BatchFixer().apply_fixes_by_file({path: analysis.edits})
        content = self.read()
        self.assertNotIn("\t\tx = 0\n", content)
        self.assertIn("\t\tname string\n", content)
        self.assertEqual(ws.relint(finding.file_path), [])

    def test_dry_run_does_not_write(self):
        ws, finding, analysis = self.analyse(
            "\tvar n = 0\n"
            "\tn, err := 1, check()\n"
            "\tprintln(n, err)"
        )
        before = self.read()
        path = ws.loader.resolve(finding.file_path)
        summary = BatchFixer().apply_fixes_by_file({path: analysis.edits}, dry_run=True)
        self.assertEqual(summary[path], 1)
        self.assertEqual(self.read(), before)


class TestBatchFixer(unittest.TestCase):

    def test_edits_applied_bottom_up(self):
        content = b"abcdef"
        edits = [
            {"start_byte": 0, "end_byte": 1, "text": "X"},
            {"start_byte": 4, "end_byte": 6, "text": ""},
        ]
        new_content, applied = BatchFixer().apply_edits(content, edits)
        self.assertEqual(new_content, b"Xbcd")
        self.assertEqual(applied, 2)

    def test_overlap_and_bounds_are_skipped(self):
        edits = [
            {"start_byte": 1, "end_byte": 4, "text": ""},
            {"start_byte": 2, "end_byte": 5, "text": ""},
            {"start_byte": 3, "end_byte": 99, "text": ""},
        ]
        new_content, applied = BatchFixer().apply_edits(b"abcdef", edits)
        self.assertEqual(applied, 1)
        self.assertEqual(new_content, b"abf")

    def test_parse_errors_are_refused(self):
        tmp = tempfile.mkdtemp()
        try:
            path = os.path.join(tmp, "main.go")
            original = b"package main\n\nfunc run() {\n}\n"
            with open(path, "wb") as f:
                f.write(original)
            closing = original.rindex(b"}")
            summary = BatchFixer().apply_fixes_by_file(
                {path: [{"start_byte": closing, "end_byte": closing + 1, "text": ""}]}
            )
            self.assertEqual(summary[path], 0)
            with open(path, "rb") as f:
                self.assertEqual(f.read(), original)
        finally:
            shutil.rmtree(tmp)

    def test_missing_file(self):
        missing = os.path.join(tempfile.gettempdir(), "no-such-dir-redecl", "x.go")
        summary = BatchFixer().apply_fixes_by_file(
            {missing: [{"start_byte": 0, "end_byte": 0, "text": ""}]}
        )
        self.assertEqual(summary[missing], 0)


if __name__ == "__main__":
    unittest.main()
