import os
import logging
from typing import Dict, List, Tuple

from redecl.go_parser import parse_source

logger = logging.getLogger(__name__)


class BatchFixer:
    """
    Applies multiple byte edits to Go files safely.
    Handles offset shifts by applying edits in reverse order (bottom-up) and
    refuses to write a result that no longer parses.
    """

    def apply_fixes_by_file(self, file_map: Dict[str, List[Dict]], dry_run: bool = False) -> Dict[str, int]:
        """
        file_map: { absolute_file_path: [ {start_byte, end_byte, text}, ... ] }
        Returns {file_path: number_of_edits_applied}.
        """
        summary = {}

        for file_path, edits in file_map.items():
            if not edits:
                continue

            try:
                applied, msg = self._apply_to_file(file_path, edits, dry_run)
                summary[file_path] = applied
                logger.info(msg)
            except (OSError, ValueError) as e:
                logger.error("Failed to apply fixes to %s: %s", file_path, e)
                summary[file_path] = 0

        return summary

    def apply_edits(self, content: bytes, edits: List[Dict]) -> Tuple[bytes, int]:
        """Apply non-overlapping edits bottom-up. Returns (new_content, applied)."""
        sorted_edits = sorted(edits, key=lambda e: e["start_byte"], reverse=True)

        # Going in reverse, each edit must end before the previously applied one starts
        last_start = float("inf")
        new_content = bytearray(content)
        applied = 0

        for edit in sorted_edits:
            start = edit["start_byte"]
            end = edit["end_byte"]
            text = edit["text"].encode("utf-8")

            if start < 0 or end > len(new_content) or start > end:
                logger.warning("Edit %d-%d out of bounds. Skipping.", start, end)
                continue
            if end > last_start:
                logger.warning("Overlap detected at offset %d-%d. Skipping edit.", start, end)
                continue

            new_content[start:end] = text
            last_start = start
            applied += 1

        return bytes(new_content), applied

    def _apply_to_file(self, file_path: str, edits: List[Dict], dry_run: bool) -> Tuple[int, str]:
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        with open(file_path, "rb") as f:
            content = f.read()

        new_content, applied = self.apply_edits(content, edits)
        if applied == 0:
            return 0, f"No applicable edits for {file_path}"

        # Refuse to introduce parse errors that were not there before
        if parse_source(new_content).root_node.has_error and not parse_source(content).root_node.has_error:
            raise ValueError(f"edits would produce invalid Go in {file_path}")

        if dry_run:
            return applied, f"[Dry Run] Would apply {applied} fixes to {file_path}"

        with open(file_path, "wb") as f:
            f.write(new_content)
        return applied, f"Applied {applied} fixes to {file_path}"
