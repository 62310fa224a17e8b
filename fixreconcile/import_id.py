import logging
import re
from typing import Dict, List, Mapping, Optional, Pattern, Sequence

from fixreconcile.errors import NoPatternMatchedError, ValidationError

log = logging.getLogger("fix.reconcile.import")

# {name} placeholder in id templates and import patterns
PlaceholderRe = re.compile(r"{([a-z_]+)}")


class IdTemplate:
    """
    Template of a resource identity, e.g. "{project}/{region}/{name}".
    The same template is used to build the id from declared state, from remote state and from import ids,
    so the id of one object is always the same string.
    """

    def __init__(self, template: str) -> None:
        self.template = template
        self.fields: List[str] = PlaceholderRe.findall(template)
        self._regex = template_regex(template)

    def format(self, values: Mapping[str, Optional[str]]) -> str:
        missing = [f for f in self.fields if not values.get(f)]
        if missing:
            raise ValidationError(f"Can not build id {self.template}: missing {', '.join(missing)}", missing[0])
        return self.template.format_map({f: values[f] for f in self.fields})

    def parse(self, identity: str) -> Dict[str, str]:
        if matched := self._regex.fullmatch(identity):
            return matched.groupdict()
        raise ValidationError(f"Id {identity!r} does not have the expected format {self.template}")

    def __repr__(self) -> str:
        return f"IdTemplate({self.template!r})"


def template_regex(template: str) -> Pattern[str]:
    """
    projects/{project}/global/routes/{name} -> projects/(?P<project>[^/]+)/global/routes/(?P<name>[^/]+)
    """
    parts = PlaceholderRe.split(template)
    # split yields literal parts at even and placeholder names at odd positions
    regex = "".join(re.escape(part) if idx % 2 == 0 else f"(?P<{part}>[^/]+)" for idx, part in enumerate(parts))
    return re.compile(regex)


def resolve_import_id(
    import_id: str, patterns: Sequence[str], defaults: Optional[Mapping[str, Optional[str]]] = None
) -> Dict[str, str]:
    """
    Resolve the fields of an import id.

    Patterns are tried in the given order and the first pattern matching the whole id wins.
    The patterns have to be ordered from most to least specific:
    a fully qualified id must never be consumed by a bare {name} pattern.
    Fields that are part of any pattern but not of the matching one are taken from the defaults, if available.
    Fields that can not be resolved stay absent.

    :param import_id: the id given by the user.
    :param patterns: id templates, e.g. ["projects/{project}/regions/{region}/addresses/{name}", "{name}"]
    :param defaults: ambient defaults (e.g. the configured project).
    :return: the resolved identity fields.
    :raises NoPatternMatchedError: if no pattern matches.
    """
    defaults = defaults or {}
    all_fields = {name for pattern in patterns for name in PlaceholderRe.findall(pattern)}
    for pattern in patterns:
        if matched := template_regex(pattern).fullmatch(import_id):
            result = matched.groupdict()
            for name in sorted(all_fields - result.keys()):
                if value := defaults.get(name):
                    result[name] = value
            log.debug(f"Import id {import_id} matched pattern {pattern}: {result}")
            return result
    raise NoPatternMatchedError(import_id, list(patterns))
