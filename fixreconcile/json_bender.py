"""
Benders translate the json returned by the compute API into the flat field map of a resource.

    mapping = {"name": S("name"), "network": S("network") >> ShortName}
    bend(mapping, {"name": "r1", "network": "https://.../global/networks/default"})
    -> {"name": "r1", "network": "default"}

The idea is borrowed from https://github.com/Onyo/jsonbender.
Every bender is applied to a Transport, which carries the value and the read-only context of the bend call.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Union

from attrs import frozen, field

from fixreconcile.links import self_link_to_v1, name_from_self_link


@frozen
class Transport:
    value: Any
    context: Dict[str, Any] = field(factory=dict)

    @staticmethod
    def of(source: Any) -> Transport:
        return source if isinstance(source, Transport) else Transport(source)


class Bender:
    """
    Base class of all benders: execute() maps the value, raw_execute() has access to the context.
    """

    def __call__(self, source: Any) -> Any:
        return self.raw_execute(source).value

    def raw_execute(self, source: Any) -> Transport:
        transport = Transport.of(source)
        return Transport(self.execute(transport.value), transport.context)

    def execute(self, source: Any) -> Any:
        return source

    def or_else(self, other: Bender) -> Bender:
        return OrElse(self, other)

    def __rshift__(self, other: Bender) -> Bender:
        return Compose(self, other)


Mapping = Union[Bender, Dict[str, Any]]


class S(Bender):
    """
    Value under the given path or the default, if the path does not exist.
    """

    def __init__(self, *path: Union[str, int], default: Optional[Any] = None) -> None:
        if not path:
            raise ValueError("No path given")
        self.path = path
        self.default = default

    def execute(self, source: Any) -> Any:
        current = source
        for key in self.path:
            try:
                current = current[key]
            except (KeyError, TypeError, IndexError):
                return self.default
        return current


class K(Bender):
    def __init__(self, value: Any) -> None:
        self.value = value

    def execute(self, source: Any) -> Any:
        return self.value


class F(Bender):
    """
    Call a function with the value as first argument. Additional arguments are passed after the value.
    """

    def __init__(self, fn: Callable[..., Any], *args: Any) -> None:
        self.fn = fn
        self.args = args

    def execute(self, source: Any) -> Any:
        return self.fn(source, *self.args)


class Context(Bender):
    """
    The context of the bend call, e.g. the identity parameters of a read.
    """

    def raw_execute(self, source: Any) -> Transport:
        transport = Transport.of(source)
        return Transport(transport.context, transport.context)


class OrElse(Bender):
    def __init__(self, first: Bender, otherwise: Bender) -> None:
        self.first = first
        self.otherwise = otherwise

    def raw_execute(self, source: Any) -> Transport:
        result = self.first.raw_execute(source)
        return result if result.value is not None else self.otherwise.raw_execute(source)


class Compose(Bender):
    """
    Pipe the result of the first bender into the second one. None stops the pipe.
    """

    def __init__(self, first: Bender, second: Bender) -> None:
        self.first = first
        self.second = second

    def raw_execute(self, source: Any) -> Transport:
        result = self.first.raw_execute(source)
        return result if result.value is None else self.second.raw_execute(result)


class ForallBend(Bender):
    def __init__(self, mapping: Mapping) -> None:
        self.mapping = mapping

    def raw_execute(self, source: Any) -> Transport:
        transport = Transport.of(source)
        if transport.value is None:
            return transport
        return Transport([bend(self.mapping, v, transport.context) for v in transport.value], transport.context)


class AsInt(Bender):
    def execute(self, source: Any) -> Any:
        if isinstance(source, int):
            return source
        try:
            return int(source)
        except (TypeError, ValueError):
            return None


class AsSortedSet(Bender):
    """
    Set semantics for a list: no duplicates, sorted.
    """

    def execute(self, source: Any) -> Any:
        return sorted(set(source)) if isinstance(source, (list, set, frozenset, tuple)) else None


class EmptyToNoneBender(Bender):
    def execute(self, source: Any) -> Any:
        return None if source in ("", [], {}) else source


class ShortNameBender(Bender):
    """
    https://www.googleapis.com/compute/v1/projects/p/regions/r/subnetworks/s -> s
    """

    def execute(self, source: Any) -> Any:
        return name_from_self_link(source) if isinstance(source, str) else source


class SelfLinkV1Bender(Bender):
    def execute(self, source: Any) -> Any:
        return self_link_to_v1(source) if isinstance(source, str) else source


EmptyToNone = EmptyToNoneBender()
ShortName = ShortNameBender()
SelfLinkV1 = SelfLinkV1Bender()


def bend(mapping: Mapping, source: Any, context: Optional[Dict[str, Any]] = None) -> Any:
    """
    Apply the mapping to the source.
    :param mapping: a bender or a (nested) dict of benders. All other values are taken as is.
    :param source: the json to bend.
    :param context: values available via Context().
    """
    transport = Transport(source, context or {})

    def walk(inner: Any) -> Any:
        if isinstance(inner, Bender):
            return inner(transport)
        elif isinstance(inner, dict):
            return {k: walk(v) for k, v in inner.items()}
        elif isinstance(inner, list):
            return [walk(v) for v in inner]
        else:
            return inner

    return walk(mapping)
