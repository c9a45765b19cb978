import unittest

from ccindex.index.classifier import EditBatch
from ccindex.index.types import EditMetadata, SessionIndex
from ccindex.models import FileEdit


def _edit(path: str, old_string: str = "") -> dict:
    return {"type": "tool_use", "name": "Edit", "input": {"file_path": path, "old_string": old_string, "new_string": "x"}}


def _write(path: str) -> dict:
    return {"type": "tool_use", "name": "Write", "input": {"file_path": path, "content": "x"}}


class EditBatchObserveTests(unittest.TestCase):
    def test_ignores_other_tools_and_bad_inputs(self) -> None:
        batch = EditBatch(project_path="/proj")
        self.assertFalse(batch.observe({"name": "Read", "input": {"file_path": "/proj/a"}}, sequence=0, uuid="a", timestamp=None))
        self.assertFalse(batch.observe({"name": "Edit", "input": "nope"}, sequence=1, uuid="b", timestamp=None))
        self.assertFalse(batch.observe({"name": "Write", "input": {"file_path": 3}}, sequence=2, uuid="c", timestamp=None))
        self.assertFalse(batch.observe({"name": "Write", "input": {}}, sequence=3, uuid="d", timestamp=None))
        self.assertEqual(len(batch), 0)
        self.assertEqual(batch.edit_lines, {})

    def test_records_lines_metadata_and_timestamps(self) -> None:
        batch = EditBatch(project_path="/proj")
        self.assertTrue(batch.observe(_write("/proj/a.py"), sequence=4, uuid="w1", timestamp="T1"))
        self.assertTrue(batch.observe(_edit("/proj/a.py", "old"), sequence=7, uuid="e1", timestamp=None))

        self.assertEqual(batch.edit_lines, {"a.py": [4, 7]})
        self.assertEqual(batch.metadata, {4: EditMetadata(uuid="w1"), 7: EditMetadata(uuid="e1")})
        # a touch without a timestamp keeps the previous one
        self.assertEqual(batch.timestamps, {"a.py": "T1"})
        self.assertEqual(batch.prior_content, {"a.py"})
        self.assertEqual(len(batch), 2)

    def test_same_line_touching_a_path_twice_records_it_once(self) -> None:
        batch = EditBatch(project_path="/proj")
        batch.observe(_edit("/proj/a.py", "one"), sequence=3, uuid="e1", timestamp="T")
        batch.observe(_edit("/proj/a.py", "two"), sequence=3, uuid="e1", timestamp="T")
        self.assertEqual(batch.edit_lines, {"a.py": [3]})

    def test_write_after_edit_does_not_override_operation(self) -> None:
        batch = EditBatch(project_path="/proj")
        batch.observe(_edit("/proj/a.py", "old"), sequence=0, uuid="e1", timestamp=None)
        batch.observe(_write("/proj/a.py"), sequence=1, uuid="w1", timestamp=None)
        self.assertEqual(batch.operations, {"a.py": "modified"})

    def test_write_to_known_path_records_no_operation(self) -> None:
        batch = EditBatch(project_path="/proj", known_paths={"a.py": [0]})
        batch.observe(_write("/proj/a.py"), sequence=5, uuid="w2", timestamp="T2")
        self.assertEqual(batch.operations, {})
        self.assertEqual(batch.edit_lines, {"a.py": [5]})


class EditBatchFinalizeTests(unittest.TestCase):
    def test_finalize_classifies_and_sorts(self) -> None:
        batch = EditBatch(project_path="/proj")
        batch.observe(_edit("/proj/z.py", "old"), sequence=0, uuid="e1", timestamp="T0")
        batch.observe(_edit("/proj/m.py", ""), sequence=1, uuid="e2", timestamp="T1")
        batch.observe(_write("/proj/a.py"), sequence=2, uuid="w1", timestamp="T2")
        batch.observe(_write("/elsewhere/b.py"), sequence=3, uuid="w2", timestamp=None)
        index = SessionIndex()

        batch.finalize(index)

        self.assertEqual(
            index.file_edits,
            [
                FileEdit(path="/elsewhere/b.py", editType="added", lastEditedAt=None),
                FileEdit(path="a.py", editType="added", lastEditedAt="T2"),
                # an Edit with nothing to replace counts as a creation
                FileEdit(path="m.py", editType="added", lastEditedAt="T1"),
                FileEdit(path="z.py", editType="modified", lastEditedAt="T0"),
            ],
        )
        self.assertEqual(index.file_to_edit_lines["z.py"], [0])
        self.assertEqual(sorted(index.edit_metadata), [0, 1, 2, 3])

    def test_prior_content_anywhere_in_the_pass_makes_path_modified(self) -> None:
        batch = EditBatch(project_path="/proj")
        batch.observe(_write("/proj/a.py"), sequence=0, uuid="w1", timestamp=None)
        batch.observe(_edit("/proj/a.py", "old"), sequence=1, uuid="e1", timestamp=None)
        index = SessionIndex()
        batch.finalize(index)
        self.assertEqual(index.file_edits[0].editType, "modified")


class EditBatchMergeTests(unittest.TestCase):
    def _index(self) -> SessionIndex:
        index = SessionIndex()
        batch = EditBatch(project_path="/proj")
        batch.observe(_write("/proj/b.py"), sequence=0, uuid="w1", timestamp="T0")
        batch.observe(_edit("/proj/d.py", "old"), sequence=1, uuid="e1", timestamp="T1")
        batch.finalize(index)
        return index

    def test_existing_added_path_is_promoted_by_prior_content(self) -> None:
        index = self._index()
        batch = EditBatch(project_path="/proj", known_paths=index.file_to_edit_lines)
        batch.observe(_edit("/proj/b.py", "old"), sequence=5, uuid="e5", timestamp="T5")

        batch.merge_into(index)

        self.assertEqual(index.file_edit_for("b.py"), FileEdit(path="b.py", editType="modified", lastEditedAt="T5"))
        self.assertEqual(index.file_to_edit_lines["b.py"], [0, 5])
        self.assertEqual(index.edit_metadata[5], EditMetadata(uuid="e5"))

    def test_existing_modified_path_is_never_demoted(self) -> None:
        index = self._index()
        batch = EditBatch(project_path="/proj", known_paths=index.file_to_edit_lines)
        batch.observe(_edit("/proj/d.py", ""), sequence=6, uuid="e6", timestamp=None)
        batch.observe(_write("/proj/d.py"), sequence=7, uuid="w7", timestamp="T7")

        batch.merge_into(index)

        self.assertEqual(index.file_edit_for("d.py"), FileEdit(path="d.py", editType="modified", lastEditedAt="T7"))

    def test_new_paths_follow_the_batch_rule_and_stay_sorted(self) -> None:
        index = self._index()
        batch = EditBatch(project_path="/proj", known_paths=index.file_to_edit_lines)
        batch.observe(_edit("/proj/c.py", ""), sequence=8, uuid="e8", timestamp=None)
        batch.observe(_edit("/proj/a.py", "old"), sequence=9, uuid="e9", timestamp="T9")

        batch.merge_into(index)

        self.assertEqual([edit.path for edit in index.file_edits], ["a.py", "b.py", "c.py", "d.py"])
        self.assertEqual(index.file_edit_for("a.py").editType, "modified")
        self.assertEqual(index.file_edit_for("c.py").editType, "added")

    def test_empty_batch_leaves_index_untouched(self) -> None:
        index = self._index()
        before = [edit.model_copy() for edit in index.file_edits]
        EditBatch(project_path="/proj").merge_into(index)
        self.assertEqual(index.file_edits, before)


if __name__ == "__main__":
    unittest.main()
