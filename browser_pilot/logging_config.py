import locale
import logging
import sys

from browser_pilot.config import CONFIG
from browser_pilot.timing import now_utc_iso, process_start_utc_iso, uptime_seconds

RESULT_LEVEL = 35

THIRD_PARTY_LOGGERS = [
	'httpx',
	'httpcore',
	'openai',
	'playwright',
	'asyncio',
	'urllib3',
	'charset_normalizer',
	'PIL.PngImagePlugin',
]


def addLoggingLevel(levelName, levelNum, methodName=None):
	"""
	Adds a new logging level to the `logging` module and the currently
	configured logging class.

	`levelName` becomes an attribute of the `logging` module with the value
	`levelNum`. `methodName` becomes a convenience method for both `logging`
	itself and the class returned by `logging.getLoggerClass()`. If
	`methodName` is not specified, `levelName.lower()` is used.

	Raises `AttributeError` if the level name or method is already defined.

	Example
	-------
	>>> addLoggingLevel('RESULT', 35)
	>>> logging.getLogger(__name__).result('run finished')
	"""
	if not methodName:
		methodName = levelName.lower()

	if hasattr(logging, levelName):
		raise AttributeError(f'{levelName} already defined in logging module')
	if hasattr(logging, methodName):
		raise AttributeError(f'{methodName} already defined in logging module')
	if hasattr(logging.getLoggerClass(), methodName):
		raise AttributeError(f'{methodName} already defined in logger class')

	def logForLevel(self, message, *args, **kwargs):
		if self.isEnabledFor(levelNum):
			self._log(levelNum, message, args, **kwargs)

	def logToRoot(message, *args, **kwargs):
		logging.log(levelNum, message, *args, **kwargs)

	logging.addLevelName(levelNum, levelName)
	setattr(logging, levelName, levelNum)
	setattr(logging.getLoggerClass(), methodName, logForLevel)
	setattr(logging, methodName, logToRoot)


class SafeStreamHandler(logging.StreamHandler):
	"""Stream handler that survives consoles which cannot encode emoji.

	Retries the write with 'replace' on UnicodeEncodeError instead of raising.
	"""

	def emit(self, record):  # type: ignore[override]
		try:
			msg = self.format(record)
			stream = self.stream
			try:
				stream.write(msg + self.terminator)
			except UnicodeEncodeError:
				enc = getattr(stream, 'encoding', None) or locale.getpreferredencoding(False) or 'utf-8'
				sanitized = msg.encode(enc, errors='replace').decode(enc, errors='replace')
				stream.write(sanitized + self.terminator)
			self.flush()
		except Exception:
			self.handleError(record)


class BrowserPilotFormatter(logging.Formatter):
	"""Injects `utc`, `uptime` and the optional instruction/step extras."""

	def format(self, record):
		record.utc = now_utc_iso()
		record.uptime = f'{uptime_seconds():.3f}s'
		instruction_id = getattr(record, 'instruction_id', None)
		step = getattr(record, 'step', None)
		if instruction_id is not None:
			record.run_ctx = f' [{instruction_id}#{step}]' if step is not None else f' [{instruction_id}]'
		else:
			record.run_ctx = ''
		return super().format(record)


def setup_logging(stream=None, log_level=None, force_setup=False):
	"""Setup logging configuration for browser_pilot.

	Args:
		stream: Output stream for logs (default: sys.stdout).
		log_level: Override log level (default: CONFIG.BROWSER_PILOT_LOGGING_LEVEL)
		force_setup: Force reconfiguration even if handlers already exist
	"""
	try:
		addLoggingLevel('RESULT', RESULT_LEVEL)
	except AttributeError:
		pass

	log_type = log_level or CONFIG.BROWSER_PILOT_LOGGING_LEVEL

	if logging.getLogger().hasHandlers() and not force_setup:
		return logging.getLogger('browser_pilot')

	root = logging.getLogger()
	root.handlers = []

	console = SafeStreamHandler(stream or sys.stdout)

	if log_type == 'result':
		console.setLevel('RESULT')
		console.setFormatter(BrowserPilotFormatter('%(message)s'))
	else:
		console.setFormatter(
			BrowserPilotFormatter('%(levelname)-8s [%(name)s]%(run_ctx)s %(utc)s (+%(uptime)s) %(message)s')
		)

	root.addHandler(console)

	if log_type == 'result':
		root.setLevel('RESULT')
	elif log_type == 'debug':
		root.setLevel(logging.DEBUG)
	else:
		root.setLevel(logging.INFO)

	pilot_logger = logging.getLogger('browser_pilot')
	pilot_logger.propagate = False
	pilot_logger.handlers = [console]
	pilot_logger.setLevel(root.level)

	pilot_logger.debug(f'Logging initialized at {now_utc_iso()} (process_start={process_start_utc_iso()})')

	for logger_name in THIRD_PARTY_LOGGERS:
		third_party = logging.getLogger(logger_name)
		third_party.setLevel(logging.ERROR)
		third_party.propagate = False

	return pilot_logger
