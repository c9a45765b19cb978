import unittest

from ccindex.index.paths import make_relative_path


class MakeRelativePathTests(unittest.TestCase):
    def test_strips_project_root(self) -> None:
        self.assertEqual(make_relative_path("/proj/src/a.py", "/proj"), "src/a.py")
        self.assertEqual(make_relative_path("/proj/x.txt", "/proj/"), "x.txt")
        self.assertEqual(make_relative_path("/proj//x.txt", "/proj"), "x.txt")

    def test_paths_outside_project_pass_through(self) -> None:
        self.assertEqual(make_relative_path("/other/a.py", "/proj"), "/other/a.py")
        self.assertEqual(make_relative_path("src/a.py", "/proj"), "src/a.py")

    def test_sibling_with_shared_prefix_is_not_inside(self) -> None:
        self.assertEqual(make_relative_path("/project-b/a.py", "/project"), "/project-b/a.py")

    def test_project_root_itself(self) -> None:
        self.assertEqual(make_relative_path("/proj", "/proj"), "")

    def test_filesystem_root(self) -> None:
        self.assertEqual(make_relative_path("/etc/hosts", "/"), "etc/hosts")

    def test_empty_project_path(self) -> None:
        self.assertEqual(make_relative_path("/etc/hosts", ""), "/etc/hosts")


if __name__ == "__main__":
    unittest.main()
