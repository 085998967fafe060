r"""
sofakit parameter schemas and schema providers.

Overview
- Schema: the declared parameter surface of a function.
  • keyvals: name → default value (key/value pairs, positional names live here too).
  • flags: group → ordered flag names; the first flag is the group default.
  • groups: alias → argument list spliced in place when the alias is met.
  • imports: names of registered providers resolved before the schema's own declarations.
  • importdefaults: argument list applied before the user's arguments.

- Providers
  • @importer("name") registers a callable (Schema) -> Schema under a name so that
    schemas can pull shared declarations with imports=("name",).

Validation highlights
- Names must be non-empty strings.
- Flag groups must be non-empty and their flags unique.
- Flags, keys and aliases share one namespace (the argument stream) and cannot collide,
  nor can any of them be the reserved 'argimport' marker.
- Group names and 'do_<flag>' indicators share the resolved flags namespace and cannot
  collide either.

Quick example:
    >>> schema = Schema(
    ...     keyvals={"Index": None, "verbose": 0},
    ...     flags={"type": ("data", "nodata")},
    ... )
    >>> schema.defaults("type")
    'data'
"""
import functools
import operator
from collections.abc import Iterable, Mapping

from .utils import *

ARGIMPORT = "argimport"

_providers = {}


def _sanitize_name(kind, name, /):
    if not isinstance(name, str):
        raise TypeError(f"schema {kind} names must be strings")
    elif not (name := name.strip()):
        raise ValueError(f"schema {kind} names cannot be empty-strings")
    return name


def _sanitize_keyvals(keyvals, /):
    if not isinstance(keyvals, Mapping):
        raise TypeError("schema 'keyvals' must be a mapping")
    return {_sanitize_name("key", name): default for name, default in keyvals.items()}


def _sanitize_flags(flags, /):
    """
    Internal: validate flag groups and freeze them as tuples.

    Raises
    - TypeError: when the mapping, a group or a flag has the wrong type.
    - ValueError: when a group is empty or repeats a flag.
    """
    if not isinstance(flags, Mapping):
        raise TypeError("schema 'flags' must be a mapping")

    sanitized = {}
    for group, members in flags.items():
        group = _sanitize_name("group", group)
        if isinstance(members, str) or not isinstance(members, Iterable):
            raise TypeError(f"schema flag group {group!r} must be an iterable of strings")
        members = tuple(_sanitize_name("flag", flag) for flag in members)
        if not members:
            raise ValueError(f"schema flag group {group!r} cannot be empty")
        if len(set(members)) != len(members):
            raise ValueError(f"schema flag group {group!r} cannot contain duplicates")
        sanitized[group] = members
    return sanitized


def _sanitize_arglist(kind, arglist, /):
    if isinstance(arglist, str) or not isinstance(arglist, Iterable):
        raise TypeError(f"schema {kind} must be an iterable of arguments")
    return tuple(arglist)


def _sanitize_groups(groups, /):
    if not isinstance(groups, Mapping):
        raise TypeError("schema 'groups' must be a mapping")
    return {_sanitize_name("alias", alias): _sanitize_arglist(f"alias {alias!r}", arglist) for alias, arglist in groups.items()}


def _check_collisions(keyvals, flags, groups, /):
    """
    Internal: reject schemas whose names overlap.

    Two namespaces are checked
    - the argument stream: flags, keys, aliases and 'argimport'.
    - the resolved flags mapping: group names and 'do_<flag>' indicators.
    """
    seen = {ARGIMPORT: "reserved marker"}

    def claim(name, kind):
        if name in seen:
            raise ValueError(f"schema names cannot collide: {kind} {name!r} is already a {seen[name]}")
        seen[name] = kind

    for group, members in flags.items():
        for flag in members:
            claim(flag, "flag")
    for name in keyvals:
        claim(name, "key")
    for alias in groups:
        claim(alias, "alias")

    indicators = {"do_" + flag for flag in functools.reduce(operator.add, flags.values(), ())}
    if clashes := indicators & flags.keys():
        raise ValueError(f"schema names cannot collide: group {sorted(clashes)[0]!r} shadows a flag indicator")


class Schema:
    """
    Declared parameter surface of a function (immutable once built).

    Parameters
    - keyvals: Mapping[str, Any], key → default value.
    - flags: Mapping[str, Iterable[str]], group → flags (first is the default).
    - groups: Mapping[str, Iterable], alias → argument list.
    - imports: Iterable[str | Callable], providers to resolve first (see importer()).
    - importdefaults: Iterable, arguments applied before the user's arguments.

    Providers are applied in order to an empty schema and the schema's own
    declarations are layered on top, so on overlapping keys the schema wins.
    """
    __slots__ = ("_keyvals", "_flags", "_groups", "_importdefaults")

    keyvals = mirror("keyvals")
    flags = mirror("flags")
    groups = mirror("groups")
    importdefaults = mirror("importdefaults")

    def __init__(self, *, keyvals=Unset, flags=Unset, groups=Unset, imports=Unset, importdefaults=Unset):
        base = Schema.__new__(Schema)
        base._keyvals, base._flags, base._groups, base._importdefaults = {}, {}, {}, ()

        for provider in _sanitize_arglist("'imports'", coalesce(imports, ())):
            base = lookup(provider)(base)
            if not isinstance(base, Schema):
                raise TypeError(f"schema provider {provider!r} must return a schema")

        base = base.extend(keyvals=keyvals, flags=flags, groups=groups, importdefaults=importdefaults)
        self._keyvals, self._flags, self._groups, self._importdefaults = (
            base._keyvals, base._flags, base._groups, base._importdefaults
        )

    def extend(self, *, keyvals=Unset, flags=Unset, groups=Unset, importdefaults=Unset):
        """
        Return a new schema with these declarations layered on top of this one.

        This is the building block for providers:
            @importer("verbosity")
            def verbosity(schema):
                return schema.extend(flags={"verbosity": ("quiet", "loud")})
        """
        extended = Schema.__new__(Schema)
        extended._keyvals = self._keyvals | _sanitize_keyvals(coalesce(keyvals, {}))
        extended._flags = self._flags | _sanitize_flags(coalesce(flags, {}))
        extended._groups = self._groups | _sanitize_groups(coalesce(groups, {}))
        extended._importdefaults = self._importdefaults + _sanitize_arglist("'importdefaults'", coalesce(importdefaults, ()))
        _check_collisions(extended._keyvals, extended._flags, extended._groups)
        return extended

    def defaults(self, group, /):
        """
        Return the default (first) flag of a group.
        """
        return self._flags[group][0]

    def groupof(self, flag, /):
        """
        Return the group owning a flag, or None when the name is not a flag.
        """
        for group, members in self._flags.items():
            if flag in members:
                return group
        return None

    def __eq__(self, other):
        if not isinstance(other, Schema):
            return NotImplemented
        return (
            self._keyvals == other._keyvals and
            self._flags == other._flags and
            self._groups == other._groups and
            self._importdefaults == other._importdefaults
        )

    __hash__ = None

    def __rich_repr__(self):
        yield "keyvals", self._keyvals
        yield "flags", self._flags
        if self._groups:
            yield "groups", self._groups
        if self._importdefaults:
            yield "importdefaults", self._importdefaults

    def __repr__(self):
        return "schema(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


def importer(name, /):
    """
    Register a schema provider under `name` (decorator).

    The decorated callable receives a Schema and returns the extended Schema.
    Registering the same name twice replaces the previous provider.
    """
    name = _sanitize_name("provider", name)

    @rename("importer")
    def wrapper(provider, /):
        if not callable(provider):
            raise TypeError("@importer() must be applied to a callable")
        _providers[name] = provider
        return provider

    return wrapper


def lookup(provider, /):
    """
    Return the provider callable for a name (or the callable itself).

    Raises
    - LookupError: when no provider is registered under that name.
    """
    if callable(provider):
        return provider
    try:
        return _providers[_sanitize_name("provider", provider)]
    except KeyError:
        raise LookupError(f"unknown schema import {provider!r} (register it with @importer({provider!r}))") from None


__all__ = (
    "ARGIMPORT",
    "Schema",
    "importer",
    "lookup",
)
