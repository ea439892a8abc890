import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "py"))

INDEX_HTML: str = """<!DOCTYPE html>
<html>
<body>
<script>
/** @inject-begin DATA */
const DATA = null;
/** @inject-end */
</script>
</body>
</html>
"""


@pytest.fixture
def root(tmp_path: Path) -> Path:
	"""A small tree to serve:

	```
	hello.txt         "Hello, World!\\n"
	data.bin          500 bytes, 0..249 twice
	index.html        template with a DATA region
	docs/guide.md
	docs/empty.txt    empty file
	link -> hello.txt
	```
	"""
	(tmp_path / "hello.txt").write_bytes(b"Hello, World!\n")
	(tmp_path / "data.bin").write_bytes(bytes(range(250)) * 2)
	(tmp_path / "index.html").write_text(INDEX_HTML)
	(tmp_path / "docs").mkdir()
	(tmp_path / "docs" / "guide.md").write_text("# Guide\n")
	(tmp_path / "docs" / "empty.txt").write_bytes(b"")
	os.symlink("hello.txt", tmp_path / "link")
	return tmp_path


# EOF
