import argparse
import sys

from .config import ServerConfig, TLSConfig
from .server import run
from .services.files import FileService
from .utils.logging import error, info


def parse(args: list[str]) -> ServerConfig:
	"""Builds the server configuration from the command line, the defaults
	coming from the environment."""
	defaults = ServerConfig()
	parser = argparse.ArgumentParser(
		prog="dserve",
		description="Serves a directory over HTTP, with cached listings and content hashes",
	)
	parser.add_argument("--port", type=int, default=defaults.port)
	parser.add_argument("--hostname", default=defaults.host)
	parser.add_argument("--root", default=defaults.root, help="Directory to serve")
	parser.add_argument(
		"--timeout",
		type=int,
		default=defaults.timeout,
		help="Milliseconds before a cached filesystem entry is rescanned",
	)
	parser.add_argument("--cors", default=defaults.cors, help="Allowed CORS origin")
	parser.add_argument("--tls", action="store_true", default=defaults.tls is not None)
	parser.add_argument("--cert", default=defaults.tls.cert if defaults.tls else None)
	parser.add_argument("--key", default=defaults.tls.key if defaults.tls else None)
	options = parser.parse_args(args)
	if options.tls and not (options.cert and options.key):
		parser.error("Invalid TLS configuration: --tls requires --cert and --key")
	return ServerConfig(
		port=options.port,
		host=options.hostname,
		root=options.root,
		timeout=options.timeout,
		cors=options.cors,
		tls=TLSConfig(options.cert, options.key) if options.tls else None,
	)


def main(args: list[str] | None = None) -> None:
	config = parse(sys.argv[1:] if args is None else args)
	service = FileService.FromConfig(config)
	info("Starting dserve", Root=service.root, Timeout=config.timeout)
	try:
		run(service, host=config.host, port=config.port, tls=config.tls)
	except OSError as e:
		error(f"Server failed: {e}", "SERVERERR")
		sys.exit(1)


if __name__ == "__main__":
	main()

# EOF
