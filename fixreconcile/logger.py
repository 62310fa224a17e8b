import json
import logging
import os
from logging import DEBUG, INFO, WARNING, CRITICAL, Formatter, LogRecord, StreamHandler, basicConfig, getLogger
from typing import Any, ClassVar, Dict, Mapping, Optional

from attrs import define, field

from fixreconcile.args import ArgumentParser
from fixreconcile.types import Json

TRACE = DEBUG - 5
logging.addLevelName(TRACE, "TRACE")

# all loggers of this project live below this name
RootLoggerName = "fix.reconcile"

getLogger(RootLoggerName).setLevel(INFO)

# json property -> attribute of the log record
JsonLogFields = {"timestamp": "asctime", "level": "levelname", "logger": "name", "message": "message", "pid": "process"}


def add_args(arg_parser: ArgumentParser) -> None:
    group = arg_parser.add_mutually_exclusive_group()
    group.add_argument("--verbose", "-v", dest="verbose", action="store_true", default=False, help="Verbose logging")
    group.add_argument("--trace", dest="trace", action="store_true", default=False, help="Trace logging")
    group.add_argument("--quiet", dest="quiet", action="store_true", default=False, help="Only log errors")


@define
class LoggingConfig:
    kind: ClassVar[str] = "logging"
    verbose: Optional[bool] = field(default=False, metadata={"description": "Verbose logging"})
    quiet: Optional[bool] = field(default=False, metadata={"description": "Only log errors"})
    json_format: Optional[bool] = field(default=False, metadata={"description": "Log one json object per line"})


class JsonFormatter(Formatter):
    """
    Render every log record as one json object.

    fmt_dict maps the name of the json property to the attribute of the log record,
    e.g. {"level": "levelname", "message": "message"}.
    static_values are added to every message.
    """

    def __init__(
        self,
        fmt_dict: Mapping[str, str],
        time_format: str = "%Y-%m-%dT%H:%M:%S",
        static_values: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__()
        self.fmt_dict = fmt_dict
        self.time_format = time_format
        self.static_values = static_values or {}

    def usesTime(self) -> bool:  # noqa: N802
        return "asctime" in self.fmt_dict.values()

    def to_json(self, record: LogRecord) -> Json:
        record.message = record.getMessage()
        if self.usesTime():
            record.asctime = self.formatTime(record, self.time_format)
        js: Json = {key: getattr(record, attr, None) for key, attr in self.fmt_dict.items()}
        js.update(self.static_values)
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            js["exception"] = record.exc_text
        if record.stack_info:
            js["stack_info"] = self.formatStack(record.stack_info)
        return js

    def format(self, record: LogRecord) -> str:
        return json.dumps(self.to_json(record), default=str)


def env_flag(name: str) -> bool:
    return os.environ.get(f"FIXRECONCILE_{name}", "false").lower() == "true"


def log_level(verbose: bool, trace: bool, quiet: bool, level: Optional[str]) -> Any:
    if level:
        return level
    elif trace or env_flag("TRACE"):
        return TRACE
    elif verbose or env_flag("VERBOSE"):
        return DEBUG
    elif quiet or env_flag("QUIET"):
        return CRITICAL
    else:
        return INFO


def setup_logger(
    proc: str,
    *,
    force: bool = True,
    verbose: bool = False,
    trace: bool = False,
    quiet: bool = False,
    level: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Configure the root logger for the process.
    FIXRECONCILE_LOG_TEXT=true forces plain text output, FIXRECONCILE_LOG_FORMAT overrides the text format.
    """
    if json_format and not env_flag("LOG_TEXT"):
        handler = StreamHandler()
        handler.setFormatter(JsonFormatter(JsonLogFields, static_values={"process": proc}))
        basicConfig(handlers=[handler], force=force)
    else:
        log_format = os.environ.get(
            "FIXRECONCILE_LOG_FORMAT", f"%(asctime)s|{proc}|%(levelname)5s|%(process)d  %(message)s"
        )
        basicConfig(format=log_format, datefmt="%y-%m-%d %H:%M:%S", force=force)
    project_level = log_level(verbose, trace, quiet, level)
    if project_level == CRITICAL:
        # quiet: other libraries only report warnings
        getLogger().setLevel(WARNING)
    getLogger(RootLoggerName).setLevel(project_level)
