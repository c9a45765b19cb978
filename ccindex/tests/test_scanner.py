import json
import unittest
from unittest.mock import patch

from ccindex.index import scanner as scanner_module
from ccindex.index.scanner import ScannedRecord, is_human_message, scan_line


class ScanLineTests(unittest.TestCase):
    def test_extracts_index_fields(self) -> None:
        raw = json.dumps(
            {
                "type": "assistant",
                "uuid": "a1",
                "parentUuid": "u1",
                "timestamp": "2026-02-16T10:00:00Z",
                "message": {"content": [{"type": "text", "text": "ok"}]},
            }
        ).encode("utf-8")

        record = scan_line(raw)

        self.assertIsNotNone(record)
        assert record is not None
        self.assertEqual(record.entry_type, "assistant")
        self.assertEqual(record.uuid, "a1")
        self.assertEqual(record.parent_uuid, "u1")
        self.assertEqual(record.timestamp, "2026-02-16T10:00:00Z")
        self.assertTrue(record.is_assistant)
        self.assertEqual(record.content_items(), [{"type": "text", "text": "ok"}])

    def test_accepts_text_input(self) -> None:
        record = scan_line('{"type": "user", "message": {"content": "hi"}}')
        assert record is not None
        self.assertEqual(record.content, "hi")
        self.assertEqual(record.content_items(), [])

    def test_corrupt_lines_return_none(self) -> None:
        self.assertIsNone(scan_line(b"not json"))
        self.assertIsNone(scan_line(b"\xff\xfe{}"))
        self.assertIsNone(scan_line(b"[1, 2, 3]"))
        self.assertIsNone(scan_line(b'"just a string"'))
        self.assertIsNone(scan_line(b""))
        self.assertIsNone(scan_line(b"   "))

    def test_pathological_json_is_treated_as_corrupt(self) -> None:
        deep = b"[" * 100000 + b"]" * 100000
        self.assertIsNone(scan_line(deep))
        # the digit limit only exists on interpreters that enforce int_max_str_digits
        huge = scan_line(b"{\"n\": " + b"1" * 5000 + b"}")
        self.assertTrue(huge is None or huge.uuid is None)

    def test_value_errors_from_the_decoder_are_treated_as_corrupt(self) -> None:
        with patch.object(scanner_module.json, "loads", side_effect=ValueError("Exceeds the limit (4300 digits)")):
            self.assertIsNone(scan_line(b"{\"n\": 1}"))

    def test_non_string_identifiers_are_treated_as_absent(self) -> None:
        record = scan_line(b'{"type": 7, "uuid": 12, "parentUuid": null, "timestamp": 1700000000}')
        assert record is not None
        self.assertIsNone(record.entry_type)
        self.assertIsNone(record.uuid)
        self.assertIsNone(record.parent_uuid)
        self.assertIsNone(record.timestamp)

    def test_missing_message_leaves_content_absent(self) -> None:
        record = scan_line(b'{"type": "user", "message": "plain"}')
        assert record is not None
        self.assertIsNone(record.content)

    def test_tool_uses_only_yields_tool_use_blocks(self) -> None:
        record = ScannedRecord(
            entry_type="assistant",
            content=[
                {"type": "text", "text": "editing"},
                {"type": "tool_use", "name": "Edit", "input": {}},
                "stray",
                {"type": "tool_use", "name": "Write", "input": {}},
            ],
        )
        self.assertEqual([item["name"] for item in record.tool_uses()], ["Edit", "Write"])


class HumanMessagePredicateTests(unittest.TestCase):
    def _record(self, **overrides) -> ScannedRecord:
        fields = {"entry_type": "user", "user_type": "external", "content": "please fix the bug"}
        fields.update(overrides)
        return ScannedRecord(**fields)

    def test_external_user_text_is_human(self) -> None:
        self.assertTrue(is_human_message(self._record()))
        self.assertTrue(is_human_message(self._record(content=[{"type": "text", "text": "hi"}])))
        self.assertTrue(is_human_message(self._record(content=None)))

    def test_non_user_or_internal_entries_are_not_human(self) -> None:
        self.assertFalse(is_human_message(self._record(entry_type="assistant")))
        self.assertFalse(is_human_message(self._record(user_type="internal")))
        self.assertFalse(is_human_message(self._record(user_type=None)))

    def test_tool_results_are_not_human(self) -> None:
        record = self._record(content=[{"type": "tool_result", "tool_use_id": "t1", "content": "ok"}])
        self.assertFalse(is_human_message(record))

    def test_compact_summaries_and_meta_messages_are_not_human(self) -> None:
        self.assertFalse(is_human_message(self._record(is_compact_summary=True)))
        self.assertFalse(is_human_message(self._record(is_meta=True)))

    def test_flags_must_be_literal_true(self) -> None:
        record = scan_line(b'{"type": "user", "userType": "external", "isMeta": "yes", "message": {"content": "hi"}}')
        assert record is not None
        self.assertFalse(record.is_meta)
        self.assertTrue(is_human_message(record))


if __name__ == "__main__":
    unittest.main()
