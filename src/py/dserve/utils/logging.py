import os
import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, Callable, NamedTuple, TypeAlias

from .primitives import TPrimitive

ERR = sys.stderr


LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="dserve")

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or not NO_COLOR


class LogType(Enum):
	Message = 0
	Event = 20


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

LOG_LEVEL_NAMES: dict[str, LogLevel] = {
	"debug": LogLevel.Debug,
	"info": LogLevel.Info,
	"warning": LogLevel.Warning,
	"error": LogLevel.Error,
}

LOG_LEVEL: LogLevel = LOG_LEVEL_NAMES.get(
	os.getenv("DSERVE_LOG_LEVEL", "info").lower(), LogLevel.Info
)


class Term:
	BOLD: str = "\033[1m" if COLOR else ""
	RESET: str = "\033[0m" if COLOR else ""

	@staticmethod
	def Color(color: int) -> str:
		return f"\033[0;38;5;{color}m" if COLOR else ""


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive | None = None
	context: dict[str, TPrimitive] | None = None
	icon: str | None = None


TLogger: TypeAlias = Callable[..., LogEntry | None]


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.RESET}={formatData(v)}" for k, v in value.items()
		)
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}] {entry.name}{Term.RESET} {formatData(entry.value)} {formatData(entry.context)}{Term.RESET}\n"
		)
	elif entry.level == LogLevel.Error:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}]{Term.RESET}{icon} {entry.message} [{entry.value}] {formatData(entry.context)}{Term.RESET}\n"
		)
	else:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}]{Term.RESET}{icon} {entry.message} {formatData(entry.context)}{Term.RESET}\n"
		)
	ERR.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive],
	icon: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
	)


def log(
	level: LogLevel,
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive],
) -> LogEntry | None:
	if level.value < LOG_LEVEL.value:
		return None
	return send(
		entry(
			message=message,
			level=level,
			origin=origin,
			value=value,
			context=context,
			icon=icon,
		)
	)


def debug(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry | None:
	return log(LogLevel.Debug, message, origin=origin, icon=icon, context=context)


def info(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry | None:
	return log(LogLevel.Info, message, origin=origin, icon=icon, context=context)


def warning(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry | None:
	return log(LogLevel.Warning, message, origin=origin, icon=icon, context=context)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry | None:
	return log(
		LogLevel.Error, message, origin=origin, icon=icon, value=code, context=context
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry | None:
	if LogLevel.Info.value < LOG_LEVEL.value:
		return None
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	try:
		stream = ERR
		stream.write(
			f"!!! EXCP {f'{message}: [{exception.__class__.__name__}] {exception}' if message else f'[{exception.__class__.__name__}] {exception}'}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Must be callable from within an exception handler, so it never raises.
		pass
	# Returned so that it can be used as `raise exception(e)`
	return exception


LEVELS: dict[TLogger, LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	event: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
}


def logged(item: TLogger) -> bool:
	"""Takes one of the logging function, and tells if it is currently
	enabled. This is used to guard against running the whole entry
	building when not necessary."""
	level = LEVELS.get(item)
	return level is None or level.value >= LOG_LEVEL.value


# EOF
