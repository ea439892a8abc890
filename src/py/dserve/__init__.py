from .cache import PathCache  # NOQA: F401
from .config import ServerConfig, TLSConfig  # NOQA: F401
from .http.model import HTTPRequest, HTTPResponse, HTTPRequestError  # NOQA: F401
from .server import run  # NOQA: F401
from .services.files import FileService  # NOQA: F401

__version__ = "0.1.0"

# EOF
