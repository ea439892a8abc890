from os import getenv
from typing import NamedTuple

PORT: int = int(getenv("PORT", 8000))

HOST: str = getenv("HOST", "127.0.0.1")

ROOT: str = getenv("DSERVE_ROOT", ".")

# How long (in milliseconds) a filesystem snapshot is kept before a rescan
TIMEOUT: int = int(getenv("DSERVE_TIMEOUT", 60_000))

CORS: str | None = getenv("DSERVE_CORS") or None

CERT: str | None = getenv("DSERVE_CERT") or None
KEY: str | None = getenv("DSERVE_KEY") or None

LOG_REQUESTS: bool = getenv("DSERVE_LOG_REQUESTS", "1") == "1"


class TLSConfig(NamedTuple):
	cert: str
	key: str


class ServerConfig(NamedTuple):
	"""The settings of a file server, as assembled by the command line."""

	port: int = PORT
	host: str = HOST
	root: str = ROOT
	timeout: int = TIMEOUT
	cors: str | None = CORS
	tls: TLSConfig | None = TLSConfig(CERT, KEY) if CERT and KEY else None


# EOF
