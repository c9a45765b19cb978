import unittest

from ccindex.index import SessionIndex
from ccindex.models import FileEdit, IndexStatus


class SessionIndexLookupTests(unittest.TestCase):
    def test_human_boundary_lookups(self) -> None:
        index = SessionIndex(human_message_lines=[2, 7, 11])

        self.assertIsNone(index.find_human_boundary(1))
        self.assertEqual(index.find_human_boundary(2), 2)
        self.assertEqual(index.find_human_boundary(6), 2)
        self.assertEqual(index.find_human_boundary(7), 7)
        self.assertEqual(index.find_human_boundary(500), 11)
        self.assertTrue(index.is_human_message(7))
        self.assertFalse(index.is_human_message(8))
        self.assertFalse(index.is_human_message(12))

    def test_add_human_message_keeps_list_sorted_and_unique(self) -> None:
        index = SessionIndex()
        for line in (5, 1, 9, 5, 3, 9):
            index.add_human_message(line)
        self.assertEqual(index.human_message_lines, [1, 3, 5, 9])

    def test_edit_lines_for_returns_a_copy(self) -> None:
        index = SessionIndex(file_to_edit_lines={"a.py": [1, 4]})
        lines = index.edit_lines_for("a.py")
        lines.append(99)
        self.assertEqual(index.file_to_edit_lines["a.py"], [1, 4])

    def test_replace_with_adopts_every_field(self) -> None:
        index = SessionIndex(file_size=10, line_offsets=[(0, 10)], human_message_lines=[0])
        other = SessionIndex(
            file_size=4,
            last_modified=123.0,
            skipped_lines=1,
            line_offsets=[(0, 4)],
            uuid_to_line={"u": 0},
            file_edits=[FileEdit(path="a.py", editType="added")],
            file_to_edit_lines={"a.py": [0]},
        )

        index.replace_with(other)

        self.assertEqual(index, other)

    def test_status(self) -> None:
        index = SessionIndex(
            last_modified=1700000000.0,
            line_offsets=[(0, 5), (5, 5)],
            file_edits=[FileEdit(path="a.py")],
            file_to_edit_lines={"a.py": [1]},
        )
        self.assertEqual(
            index.to_status(),
            IndexStatus(ready=True, totalEvents=2, fileEditsCount=1, filesEditedCount=1, lastModified="2023-11-14T22:13:20Z"),
        )
        self.assertIsNone(SessionIndex().to_status().lastModified)
        self.assertEqual(IndexStatus.failed("nope"), IndexStatus(ready=False, error="nope"))
        self.assertFalse(IndexStatus.building().ready)


if __name__ == "__main__":
    unittest.main()
