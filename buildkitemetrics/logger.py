import json
import logging
import os
import sys
from logging import (
    basicConfig,
    getLogger,
    DEBUG,
    INFO,
    WARNING,
    ERROR,
    CRITICAL,
    StreamHandler,
    Formatter,
)
from typing import Any, Dict, Mapping, Optional

from buildkitemetrics.args import ArgumentParser

TRACE = DEBUG - 5

getLogger().setLevel(ERROR)
getLogger("buildkitemetrics").setLevel(INFO)


def add_args(arg_parser: ArgumentParser) -> None:
    group = arg_parser.add_mutually_exclusive_group()
    group.add_argument(
        "--verbose",
        "-v",
        help="Verbose logging",
        dest="verbose",
        action="store_true",
        default=False,
    )
    group.add_argument(
        "--trace",
        help="Trace logging",
        dest="trace",
        action="store_true",
        default=False,
    )
    group.add_argument(
        "--quiet",
        help="Only log errors",
        dest="quiet",
        action="store_true",
        default=False,
    )


class JsonFormatter(Formatter):
    """
    Simple json log formatter.
    Maps output keys to LogRecord attributes, e.g. {"level": "levelname"}.
    """

    def __init__(self, fmt_dict: Mapping[str, str], static_values: Optional[Dict[str, str]] = None):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")
        self.fmt_dict = fmt_dict
        self.static_values = static_values or {}

    def format(self, record) -> str:
        record.message = record.getMessage()
        if "asctime" in self.fmt_dict.values():
            record.asctime = self.formatTime(record, self.datefmt)

        message_dict: Dict[str, Any] = {key: record.__dict__[attr] for key, attr in self.fmt_dict.items()}
        message_dict.update(self.static_values)
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            message_dict["exception"] = record.exc_text
        return json.dumps(message_dict, default=str)


def env_flag(name: str) -> bool:
    return os.environ.get(f"BUILDKITEMETRICS_{name}", "false").lower() == "true"


def setup_logger(proc: str, *, force: bool = True) -> None:
    if env_flag("LOG_TEXT"):
        log_format = f"%(asctime)s|{proc}|%(levelname)5s|%(process)d|%(threadName)10s  %(message)s"
        basicConfig(format=log_format, datefmt="%y-%m-%d %H:%M:%S", force=force)
    else:
        handler = StreamHandler()
        handler.setFormatter(
            JsonFormatter(
                {
                    "timestamp": "asctime",
                    "level": "levelname",
                    "message": "message",
                    "pid": "process",
                    "thread": "threadName",
                },
                static_values={"process": proc},
            )
        )
        basicConfig(handlers=[handler], force=force)

    # verbosity from argv and env, arguments are not parsed yet
    argv = sys.argv[1:]
    if "--trace" in argv or env_flag("TRACE"):
        getLogger("buildkitemetrics").setLevel(TRACE)
    elif "-v" in argv or "--verbose" in argv or env_flag("VERBOSE"):
        getLogger("buildkitemetrics").setLevel(DEBUG)
    elif "--quiet" in argv or env_flag("QUIET"):
        getLogger().setLevel(WARNING)
        getLogger("buildkitemetrics").setLevel(CRITICAL)


logging.addLevelName(TRACE, "TRACE")

setup_logger("buildkitemetrics", force=False)
log = getLogger("buildkitemetrics")
