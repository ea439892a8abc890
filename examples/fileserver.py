"""
Static File Server Example

This demonstrates serving a directory programmatically.
Features shown:
- FileService with a custom cache timeout and CORS origin
- HTML listings rendered from `index.html` (see `examples/index.html`)
- JSON listings with `?json` or `Accept: application/json`

Usage:
    python fileserver.py [ROOT]

Test with:
    curl http://localhost:8000/                    # JSON listing
    curl -H "Accept: text/html" http://localhost:8000/
    curl -H "Range: bytes=0-99" http://localhost:8000/README.md
    curl -I http://localhost:8000/README.md       # X-File-Hash header

Copy `examples/index.html` to the served root to get HTML listings.
"""

import sys

from dserve import run
from dserve.services.files import FileService
from dserve.utils.logging import info


class StaticFileServer(FileService):
	"""A file server rescanning entries every 5 seconds, and allowing
	any origin."""

	def __init__(self, root: str):
		super().__init__(root, timeout=5.0, cors="*")
		info("Static file server initialized", Root=self.root)


if __name__ == "__main__":
	root = sys.argv[1] if len(sys.argv) > 1 else "."
	info("Starting static file server")
	info("Access examples: http://localhost:8000/?json")
	run(StaticFileServer(root))

# EOF
