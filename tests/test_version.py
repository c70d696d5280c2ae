import sys
import os
import unittest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import fittrack


class TestVersion(unittest.TestCase):

    def test_version_is_read_from_the_package(self):
        """The version comes from fittrack/VERSION regardless of the working directory."""
        cwd = os.getcwd()
        try:
            os.chdir(os.path.dirname(os.path.abspath(__file__)))
            version_file = os.path.join(os.path.dirname(fittrack.__file__), "VERSION")
            with open(version_file) as f:
                expected = f.read().strip()
        finally:
            os.chdir(cwd)

        self.assertEqual(fittrack.__version__, expected)
        self.assertNotEqual(fittrack.__version__, "0.1.0-dev")


if __name__ == '__main__':
    unittest.main()
