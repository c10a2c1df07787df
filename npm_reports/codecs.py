# npm_reports/codecs.py
"""
Field codecs shared by the report schemas.

npm writes a few values in a shape that is not the natural in-memory one:
dependency paths are single strings joined with '>', timestamps are RFC 3339
strings, and some list entries are either a bare scalar or a full object with
no field telling them apart. Each codec here is a pydantic annotation, so the
schema models only have to name the type. JSON objects keyed by name decode
into read-only maps so a decoded report cannot change after the fact.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Annotated, Any, Callable, Iterator, Optional, Sequence, Union

from pydantic import AfterValidator, BeforeValidator, Discriminator, PlainSerializer, Tag

MODULE_PATH_SEPARATOR = ">"

RFC3339_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


# --- Dependency paths ---

def split_module_path(value: Any) -> tuple[str, ...]:
    """Decodes 'app>lib-a>lib-b' into ('app', 'lib-a', 'lib-b')."""
    if isinstance(value, tuple):
        return value
    if not isinstance(value, str):
        raise ValueError(f"dependency path must be a '{MODULE_PATH_SEPARATOR}' separated string")
    return tuple(value.split(MODULE_PATH_SEPARATOR))


def join_module_path(path: Sequence[str]) -> str:
    return MODULE_PATH_SEPARATOR.join(path)


ModulePath = Annotated[
    tuple[str, ...],
    BeforeValidator(split_module_path),
    PlainSerializer(join_module_path, return_type=str),
]


# --- Timestamps ---

def parse_rfc3339(value: Any) -> datetime:
    """Parses an RFC 3339 date-time string into an aware datetime."""
    if isinstance(value, datetime):
        return value
    match = RFC3339_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"expected an RFC 3339 date-time string, got {value!r}")
    offset = match.group("offset").upper()
    if offset == "Z":
        offset = "+00:00"
    # datetime only keeps microseconds
    fraction = (match.group("fraction") or "")[:6]
    text = f"{match.group('date')}T{match.group('time')}"
    if fraction:
        text += "." + fraction.ljust(6, "0")
    return datetime.fromisoformat(text + offset)


def format_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-len("+00:00")] + "Z"
    return text


Timestamp = Annotated[
    datetime,
    BeforeValidator(parse_rfc3339),
    PlainSerializer(format_rfc3339, return_type=str),
]

OptionalTimestamp = Optional[Timestamp]


# --- Unions ---
#
# pydantic puts the tag of the chosen union member into error locations. Tags
# are written as '<tag>' so they can be told apart from object keys and
# dropped again when an error location is turned into a document path.

VARIANT_SEGMENT_PATTERN = re.compile(r"^<(?P<tag>[^<>]+)>$")


def variant_segment(tag: str) -> str:
    return f"<{tag}>"


@dataclass(frozen=True)
class ShapeVariant:
    """One candidate shape of an untagged union.

    ``matches`` looks at the raw JSON value (or, when serializing, the
    in-memory value) and says whether this variant claims it. A variant
    without a predicate claims everything and belongs last.
    """
    tag: str
    annotation: Any
    matches: Optional[Callable[[Any], bool]] = None

    def claims(self, value: Any) -> bool:
        return self.matches is None or self.matches(value)


def resolve_shape(variants: Sequence[ShapeVariant], value: Any) -> Optional[str]:
    """Returns the tag of the first variant claiming ``value``, in declaration order."""
    for variant in variants:
        if variant.claims(value):
            return variant.tag
    return None


def untagged_union(*variants: ShapeVariant) -> Any:
    """
    Builds an annotation for a union told apart by shape only.

    Variants are tried strictly in the given order and only the first one
    that claims the value is validated. If that validation fails the error
    is reported from inside that variant; the remaining variants are never
    attempted.
    """
    if not variants:
        raise ValueError("an untagged union needs at least one variant")
    members = tuple(Annotated[variant.annotation, Tag(variant_segment(variant.tag))] for variant in variants)
    expected = ", ".join(variant.tag for variant in variants)

    def shape_of(value: Any) -> Optional[str]:
        tag = resolve_shape(variants, value)
        return variant_segment(tag) if tag is not None else None

    return Annotated[
        Union[members],
        Discriminator(
            shape_of,
            custom_error_type="untagged_union_mismatch",
            custom_error_message=f"Value does not match any of the expected shapes ({expected})",
        ),
    ]


def tagged_union(field: str, variants: dict[str, Any]) -> Any:
    """Builds an annotation for a union told apart by the string value of ``field``."""
    members = tuple(Annotated[annotation, Tag(variant_segment(tag))] for tag, annotation in variants.items())
    expected = ", ".join(variants)

    def tag_of(value: Any) -> Optional[str]:
        raw = value.get(field) if isinstance(value, dict) else getattr(value, field, None)
        return variant_segment(raw) if isinstance(raw, str) else None

    return Annotated[
        Union[members],
        Discriminator(
            tag_of,
            custom_error_type="union_tag_invalid",
            custom_error_message=f"'{field}' must be one of: {expected}",
        ),
    ]


def is_json_string(value: Any) -> bool:
    return isinstance(value, str)


def is_json_bool(value: Any) -> bool:
    return isinstance(value, bool)


# --- Read-only maps ---

class FrozenMapping(Mapping):
    """Read-only, hashable view of a decoded JSON object."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, key):
        return self._entries[key]

    def __iter__(self) -> Iterator:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __hash__(self) -> int:
        return hash(frozenset(self._entries.items()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self._entries)!r})"


def _as_dict(mapping: Mapping) -> dict:
    return dict(mapping)


def frozen_mapping(value_type: Any) -> Any:
    """A JSON object keyed by string, decoded into a FrozenMapping and encoded back as an object."""
    return Annotated[
        dict[str, value_type],
        AfterValidator(FrozenMapping),
        PlainSerializer(_as_dict, return_type=dict[str, value_type]),
    ]


# --- Error locations ---

def split_variants(loc: Sequence[Union[str, int]]) -> tuple[tuple[Union[str, int], ...], tuple[str, ...]]:
    """
    Splits a pydantic error location into the document path and the union
    variants chosen along it.

    ('actions', 0, '<install>', 'target') gives (('actions', 0, 'target'), ('install',)).
    """
    path = []
    variants = []
    for element in loc:
        match = VARIANT_SEGMENT_PATTERN.match(element) if isinstance(element, str) else None
        if match:
            variants.append(match.group("tag"))
        else:
            path.append(element)
    return tuple(path), tuple(variants)


def format_json_path(path: Sequence[Union[str, int]]) -> str:
    """Formats ('vulnerabilities', 'lodash', 'via', 0) as 'vulnerabilities.lodash.via[0]'."""
    formatted = ""
    for element in path:
        if isinstance(element, int):
            formatted += f"[{element}]"
        elif formatted:
            formatted += f".{element}"
        else:
            formatted = str(element)
    return formatted or "."
