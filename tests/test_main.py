import pytest

from dserve.__main__ import main, parse
from dserve.config import ServerConfig, TLSConfig


def test_defaults():
	config = parse([])
	defaults = ServerConfig()
	assert config.port == defaults.port
	assert config.host == defaults.host
	assert config.root == defaults.root
	assert config.timeout == defaults.timeout


def test_options():
	config = parse(
		[
			"--port",
			"9000",
			"--hostname",
			"0.0.0.0",
			"--root",
			"/srv/data",
			"--timeout",
			"1500",
			"--cors",
			"*",
		]
	)
	assert config == ServerConfig(
		port=9000, host="0.0.0.0", root="/srv/data", timeout=1500, cors="*", tls=None
	)


def test_tls():
	config = parse(["--tls", "--cert", "cert.pem", "--key", "key.pem"])
	assert config.tls == TLSConfig("cert.pem", "key.pem")


def test_tls_requires_files():
	with pytest.raises(SystemExit):
		parse(["--tls", "--cert", "cert.pem"])


def test_server_failure(monkeypatch: pytest.MonkeyPatch, tmp_path):
	def failing(service, **options):
		raise OSError("Address already in use")

	monkeypatch.setattr("dserve.__main__.run", failing)
	with pytest.raises(SystemExit) as e:
		main(["--root", str(tmp_path)])
	assert e.value.code == 1


# EOF
