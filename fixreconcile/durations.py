import operator
import re
from datetime import timedelta
from functools import reduce
from itertools import chain
from typing import List, Union

import parsy
from parsy import Parser, regex, string

# The order is relevant: from highest to lowest and longest to shortest
# | output | all names | number of seconds |
time_units = [
    ("d", ["days", "day", "d"], 24 * 3600),
    ("h", ["hours", "hour", "h"], 3600),
    ("min", ["minutes", "minute", "min", "m"], 60),
    ("s", ["seconds", "second", "s"], 1),
]

DurationRe = re.compile(
    "^([\\d.]+\\s*(" + "|".join(chain.from_iterable(names for _, names, _ in time_units)) + ")\\s*,?\\s*)+$"
)

whitespace: Parser = regex(r"\s*")


def lexeme(p: Parser) -> Parser:
    return whitespace >> p << whitespace


float_p = lexeme(regex(r"[0-9]+\.[0-9]+").map(float))
integer_p = lexeme(regex(r"[0-9]+").map(int))
time_unit_parser = reduce(
    lambda x, y: x | y, [lexeme(string(name)).result(seconds) for _, names, seconds in time_units for name in names]
)
single_duration_parser = parsy.seq(float_p | integer_p, time_unit_parser).combine(operator.mul)
duration_parser = single_duration_parser.sep_by(lexeme(string(",")).optional(), min=1).map(
    lambda elems: sum(elems)  # type: ignore
)


def parse_duration(ds: str) -> timedelta:
    return timedelta(seconds=duration_parser.parse(ds))


def is_duration(ds: str) -> bool:
    return DurationRe.fullmatch(ds) is not None


def duration_str(duration: timedelta) -> str:
    """
    Convert a timedelta to a short human-readable string: 4min, 1h30min, 2min42s
    """
    seconds = duration.total_seconds()
    parts: List[str] = []
    for unit, _, factor in time_units:
        if seconds >= factor:
            num = int(seconds / factor)
            seconds -= num * factor
            parts.append(f"{num}{unit}")
    return "".join(parts) if parts else "0s"


def to_timedelta(value: Union[str, int, float, timedelta]) -> timedelta:
    if isinstance(value, timedelta):
        return value
    elif isinstance(value, str):
        return parse_duration(value)
    elif isinstance(value, (int, float)):
        return timedelta(seconds=value)
    else:
        raise ValueError(f"Cannot convert {value} to timedelta")
