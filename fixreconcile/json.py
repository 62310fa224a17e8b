import logging
import sys
from datetime import timedelta
from typing import Any, Literal, Type, TypeVar, Union, get_args, get_origin

import attrs
import cattrs
from cattrs import override
from cattrs.gen import make_dict_unstructure_fn

from fixreconcile.durations import duration_str, to_timedelta
from fixreconcile.types import Json, JsonElement

if sys.version_info >= (3, 10):
    from types import UnionType, NoneType
else:
    UnionType = Union
    NoneType = type(None)

log = logging.getLogger("fix.reconcile")

AnyT = TypeVar("AnyT")

__converter = cattrs.Converter()

# private attributes (e.g. the declared fields of a resource) are never written
__converter.register_unstructure_hook_factory(
    attrs.has,
    lambda cls: make_dict_unstructure_fn(
        cls,
        __converter,
        _cattrs_omit_if_default=False,
        **{a.name: override(omit=True) for a in attrs.fields(cls) if a.name.startswith("_")},
    ),
)


# primitives are taken as is: validation of declared values is done by the resource itself
def is_primitive_or_primitive_union(t: Any) -> bool:
    if t in (str, bytes, int, float, bool, NoneType):
        return True
    origin = get_origin(t)
    if origin is Literal:
        return True
    if origin in (UnionType, Union):
        return all(is_primitive_or_primitive_union(ty) for ty in get_args(t))
    return False


__converter.register_structure_hook_func(is_primitive_or_primitive_union, lambda v, ty: v)
# durations are written as duration string and read from a duration string or a number of seconds
__converter.register_unstructure_hook(timedelta, duration_str)
__converter.register_structure_hook(timedelta, lambda v, _: to_timedelta(v))


def to_json(node: Any, strip_nulls: bool = False) -> Json:
    """
    Unstructure an attrs object into a json object.
    Sets have no json representation and are written as sorted list.
    """

    def walk(js: Any) -> Any:
        if isinstance(js, dict):
            return {k: walk(v) for k, v in js.items()}
        elif isinstance(js, (set, frozenset)):
            return sorted(walk(v) for v in js)
        elif isinstance(js, (list, tuple)):
            return [walk(v) for v in js]
        else:
            return js

    unstructured: Json = walk(__converter.unstructure(node))
    if strip_nulls:
        unstructured = {k: v for k, v in unstructured.items() if v is not None}
    return unstructured


def from_json(js: JsonElement, clazz: Type[AnyT]) -> AnyT:
    try:
        return __converter.structure(js, clazz)
    except Exception as e:
        log.debug(f"Can not deserialize json into class {clazz.__name__}: {js}. Error: {e}")
        raise
