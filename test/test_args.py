import logging
import os
from typing import Any

from fixreconcile.args import get_arg_parser, convert
from fixreconcile.logger import JsonFormatter, RootLoggerName, add_args as logging_add_args


def test_env_defaults(monkeypatch: Any) -> None:
    monkeypatch.setenv("FIXRECONCILE_STATE", "/tmp/state.json")
    monkeypatch.setenv("FIXRECONCILE_RETRIES", "3")
    monkeypatch.setenv("FIXRECONCILE_TAGS0", "a")
    monkeypatch.setenv("FIXRECONCILE_TAGS1", "b")
    parser = get_arg_parser()
    parser.add_argument("--state", dest="state", default="state.json")
    parser.add_argument("--retries", dest="retries", type=int, default=1)
    parser.add_argument("--tags", dest="tags", nargs="+", default=[])
    logging_add_args(parser)
    args = parser.parse_args([])
    assert args.state == "/tmp/state.json"
    assert args.retries == 3
    assert args.tags == ["a", "b"]
    assert args.verbose is False
    # explicit arguments win over the environment
    assert parser.parse_args(["--state", "other.json"]).state == "other.json"


def test_convert() -> None:
    assert convert("12", int) == 12
    assert convert("true", bool) is True
    assert convert("no", bool) is False
    assert convert("abc", int) == "abc"
    assert convert("x", type(None)) == "x"


def test_json_formatter() -> None:
    formatter = JsonFormatter({"level": "levelname", "message": "message"}, static_values={"process": "test"})
    record = logging.LogRecord(RootLoggerName, logging.INFO, os.path.abspath(__file__), 1, "hello %s", ("world",), None)
    assert formatter.format(record) == '{"level": "INFO", "message": "hello world", "process": "test"}'
