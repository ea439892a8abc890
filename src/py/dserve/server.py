import asyncio
import errno
import socket
import ssl
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Literal, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT, TLSConfig
from .features.cors import ALLOWED_METHODS, setCORSHeaders
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPProtocolError,
	HTTPRequest,
	HTTPRequestError,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .services.files import FileService
from .utils.logging import debug, error, event, exception, info, logged, warning


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)
		else:
			warning("Event loop error", Message=str(context.get("message")))


class ServerOptions(NamedTuple):
	host: str = "127.0.0.1"
	port: int = 8000
	backlog: int = 10_000
	# This is the polling timeout for accepting new connections, so that
	# the stop signals are noticed.
	polling: float = 1.0
	readsize: int = 64_000
	# NOTE: There is no connection timeout by default, a slow client keeps
	# its connection open until it closes it.
	keepalive: float | None = None
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True
	tls: ssl.SSLContext | None = None


OPTIONS: ServerOptions = ServerOptions()


def tlsContext(tls: TLSConfig) -> ssl.SSLContext:
	"""Creates the server side TLS context for the given certificate and
	key files."""
	context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
	context.load_cert_chain(tls.cert, tls.key)
	context.set_alpn_protocols(["http/1.1"])
	return context


class AIOStreamBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO streams."""

	__slots__ = ["writer"]

	def __init__(self, writer: asyncio.StreamWriter) -> None:
		super().__init__()
		self.writer: asyncio.StreamWriter = writer

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			self.writer.write(chunk)
			await self.writer.drain()
		return True


async def discard(reader: asyncio.StreamReader, size: int, chunk: int = 64_000) -> None:
	"""Reads and drops `size` bytes from the reader."""
	while size > 0:
		data = await reader.read(min(size, chunk))
		if not data:
			raise asyncio.IncompleteReadError(b"", size)
		size -= len(data)


class AIOSocketServer:
	"""AsyncIO backend, accepting sockets directly and handling each
	connection in its own task."""

	@staticmethod
	async def Connect(
		client: socket.socket,
		loop: asyncio.AbstractEventLoop,
		tls: ssl.SSLContext | None = None,
	) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
		"""Wraps an accepted socket in a stream pair, going through the TLS
		handshake when a context is given."""
		reader = asyncio.StreamReader()
		protocol = asyncio.StreamReaderProtocol(reader)
		transport, _ = await loop.connect_accepted_socket(
			lambda: protocol, client, ssl=tls
		)
		writer = asyncio.StreamWriter(transport, protocol, reader, loop)
		return reader, writer

	@classmethod
	async def OnClient(
		cls,
		service: FileService,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		try:
			reader, writer = await cls.Connect(client, loop, options.tls)
		except OSError as e:
			# Includes failed TLS handshakes
			warning("Could not set up connection", Reason=str(e))
			client.close()
			return
		await cls.OnConnection(service, reader, writer, options=options)

	@classmethod
	async def OnConnection(
		cls,
		service: FileService,
		reader: asyncio.StreamReader,
		writer: asyncio.StreamWriter,
		*,
		options: ServerOptions = OPTIONS,
	) -> None:
		"""Processes the requests of a connection one after the other, until
		the client closes it or asks for it to be closed."""
		peer: str = str(writer.get_extra_info("peername"))
		parser: HTTPParser = HTTPParser()
		body_writer: AIOStreamBodyWriter = AIOStreamBodyWriter(writer)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		try:
			while keep_alive and not body_writer.shouldClose:
				try:
					chunk: bytes = await asyncio.wait_for(
						reader.read(options.readsize), timeout=options.keepalive
					)
				except asyncio.TimeoutError:
					debug("Client timed out", Client=peer, Requests=req_count)
					break
				if not chunk:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				stream = parser.feed(chunk)
				while keep_alive:
					try:
						atom = next(stream)
					except StopIteration:
						break
					except HTTPProtocolError as e:
						# The request is abandoned, but not the connection
						warning("Dropping malformed request", Client=peer, Reason=str(e))
						parser.reset()
						break
					if isinstance(atom, HTTPRequest):
						req = atom
						req_count += 1
						if options.logRequests:
							event(req.method, req.path)
						if not req.keepAlive:
							keep_alive = False
						res = await cls.Respond(service, req)
						if not await cls.SendResponse(req, res, body_writer):
							keep_alive = False
							break
						res_count += 1
						if res.shouldClose:
							keep_alive = False
						# The rest of the body was not part of the chunk, we
						# skip it so that the next request can be parsed.
						if keep_alive and req.unread:
							await discard(reader, req.unread)
					elif atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Client=peer)
			if res_count != req_count:
				warning("Incomplete responses", Requests=req_count, Responses=res_count)
			elif status is HTTPProcessingStatus.NoData and parser.parser is not parser.message:
				warning("Client did not send a complete request", Client=peer)
		except asyncio.IncompleteReadError:
			warning("Client closed during request body", Client=peer)
		except Exception as e:
			exception(e)
		finally:
			writer.close()
			try:
				await writer.wait_closed()
			except OSError as e:
				# The peer may already be gone
				logged(debug) and debug("Connection close failed", Client=peer, Reason=str(e))

	@staticmethod
	async def Process(service: FileService, request: HTTPRequest) -> HTTPResponse:
		"""Routes the request to the service based on its method."""
		match request.method:
			case "GET":
				return await service.read(request)
			case "HEAD":
				return await service.read(request, head=True)
			case "OPTIONS":
				return service.options(request)
			case _:
				return request.error(
					405, "Only support HEAD/GET/OPTIONS", headers={"Allow": ALLOWED_METHODS}
				)

	@classmethod
	async def Respond(cls, service: FileService, request: HTTPRequest) -> HTTPResponse:
		"""Processes the request, turning any error into an error response.
		The CORS headers are set on every response."""
		try:
			res = await cls.Process(service, request)
		except Exception as e:
			res = cls.ErrorResponse(request, e)
		return setCORSHeaders(res, service.cors)

	@staticmethod
	def ErrorResponse(request: HTTPRequest, e: Exception) -> HTTPResponse:
		status: int
		content_type: str = "text/plain"
		if isinstance(e, HTTPRequestError):
			status = e.status or 500
			message = e.message
			content_type = e.contentType or content_type
		elif isinstance(e, (FileNotFoundError, NotADirectoryError)):
			status = 404
			message = f"{e.__class__.__name__}: {e.strerror or e}"
		elif isinstance(e, PermissionError):
			status = 403
			message = f"{e.__class__.__name__}: {e.strerror or e}"
		else:
			status = 500
			message = f"{e.__class__.__name__}: {e}"
		if status >= 500:
			exception(e)
		else:
			warning(
				"Request failed",
				Method=request.method,
				Path=request.path,
				Status=status,
				Reason=message,
			)
		return request.error(status, message, contentType=content_type)

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		response: HTTPResponse,
		writer: HTTPBodyWriter,
	) -> bool:
		"""Sends the response using the given writer, the body being
		omitted for `HEAD` requests. Returns `False` when the response
		could not be sent."""
		try:
			await writer.write(response.head())
			if request.method != "HEAD":
				return await writer.write(response.body)
			return True
		except ConnectionError as e:
			# Client did an early close
			warning(
				"Client closed before response was sent",
				Method=request.method,
				Path=request.path,
				Reason=str(e),
			)
			return False
		except OSError as e:
			# The head is out already, so the connection can't be reused
			exception(e, "Response interrupted")
			return False

	@classmethod
	async def Serve(
		cls,
		service: FileService,
		options: ServerOptions = ServerOptions(),
	) -> None:
		"""Main server coroutine."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		port: int = options.port
		try:
			server.bind((options.host, port))
		except OSError as e:
			warning(f"Could not bind to {options.host}:{port}, trying other ports.")
			bound: bool = False
			for p in range(options.port + 1, options.port + 5):
				try:
					server.bind((options.host, p))
					bound = True
					port = p
					info(f"Found alternate available port: {port}")
					break
				except OSError:
					continue
			if not bound:
				error(
					f"Unable to bind to {options.host}:{options.port}, aborting.",
					"HOSTPORTERR",
				)
				server.close()
				raise e

		server.listen(options.backlog)
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()

		state = ServerState()
		# Signal handlers can only be set from the main thread
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, lambda: state.stop())
			loop.add_signal_handler(SIGTERM, lambda: state.stop())
		loop.set_exception_handler(state.onException)

		info(
			"dserve listening",
			icon="🚀",
			Host=options.host,
			Port=port,
			Root=service.root,
			TLS=options.tls is not None,
		)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					if e.errno == errno.EMFILE:
						# Too many open files, we give some time for
						# connections to close.
						warning("Too many open files, pausing accept")
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				except Exception as e:
					exception(e, "Accept failed")
					continue
				task = loop.create_task(
					cls.OnClient(service, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)


def run(
	service: FileService,
	*,
	host: str = HOST,
	port: int = PORT,
	tls: TLSConfig | None = None,
	backlog: int = OPTIONS.backlog,
	polling: float = OPTIONS.polling,
	keepalive: float | None = OPTIONS.keepalive,
	logRequests: bool = LOG_REQUESTS,
	condition: Callable[[], bool] | None = None,
) -> None:
	"""High level function to run the server."""
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		polling=polling,
		keepalive=keepalive,
		logRequests=logRequests,
		condition=condition,
		tls=tlsContext(tls) if tls else None,
	)
	try:
		asyncio.run(AIOSocketServer.Serve(service, options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
