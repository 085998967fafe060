r"""
sofakit argument normalizer: turn heterogeneous call signatures into flags and key/values.

Overview
- A function declares its parameter surface with a Schema (see sofakit.schema) and hands
  its raw arguments to an ArgHelper together with the names of its positional parameters:

    >>> helper = ArgHelper()
    >>> schema = Schema(keyvals={"Index": None, "verbose": 0}, flags={"type": ("data", "nodata")})
    >>> flags, keyvals, index = helper(("Index",), schema, (5, "nodata", "verbose", 1))
    >>> flags["type"], flags["do_nodata"], keyvals["verbose"], index
    ('nodata', True, 1, 5)

Parameter categories
- Positional: the leading non-string arguments, up to the declared positional names.
- Flags: single strings; each belongs to a mutually exclusive group (first flag is the default).
- Key/value pairs: a key string followed by its value (anything).
- Group aliases: strings expanding in place into a pre-defined argument list.
- 'argimport': followed by a flags mapping and a key/values mapping merged into the result.

Precedence (later wins)
- schema defaults < schema import-defaults < per-function defaults < explicit arguments,
  explicit arguments being applied left to right.

Results
- ArgHelper.resolve() never raises for a malformed call: it returns an Outcome holding
  either a Resolution or the fault. Outcome.unwrap() surfaces the fault with trigger().
- ArgHelper.__call__ is the unwrapping shortcut returning (flags, keyvals, *positionals).

Per-function defaults
- Each ArgHelper owns a Defaults store keyed by calling-function name. It is managed with
  ArgHelper.configure("get" | "set" | "all" | "clearall", ...) or, mirroring the classic
  interface, by calling the helper with the mode string as first argument.
"""
import difflib
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from typing import NamedTuple

from .faults import *
from .schema import ARGIMPORT, Schema
from .utils import *


class Flags(Mapping):
    """
    Resolved flags: the selected flag per group plus 'do_<flag>' indicators.

        >>> flags["type"]          # selected flag of group 'type'
        'nodata'
        >>> flags["do_nodata"], flags["do_data"]
        (True, False)

    Entries merged through 'argimport' may add names the schema does not declare.
    """
    __slots__ = ("_data",)

    def __init__(self, data=Unset, /):
        self._data = dict(coalesce(data, {}))

    @classmethod
    def fromschema(cls, schema, /):
        """
        Build the initial flags of a schema: every group on its default flag.
        """
        self = cls()
        for group, members in schema._flags.items():
            self._data[group] = members[0]
            for flag in members:
                self._data["do_" + flag] = False
            self._data["do_" + members[0]] = True
        return self

    def selected(self, group, /):
        return self._data[group]

    def isactive(self, flag, /):
        return self._data.get("do_" + flag, False)

    def _select(self, group, flag, members, /):
        for member in members:
            self._data["do_" + member] = False
        self._data[group] = flag
        self._data["do_" + flag] = True

    def __getitem__(self, name):
        return self._data[name]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __eq__(self, other):
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    __hash__ = None

    def __rich_repr__(self):
        yield from self._data.items()

    def __repr__(self):
        return "flags(%s)" % ", ".join("%s=%r" % pair for pair in self._data.items())


class KeyValues(Mapping):
    """
    Resolved key/value pairs: every declared key mapped to its final value.
    """
    __slots__ = ("_data",)

    def __init__(self, data=Unset, /):
        self._data = dict(coalesce(data, {}))

    def __getitem__(self, name):
        return self._data[name]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __eq__(self, other):
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    __hash__ = None

    def __rich_repr__(self):
        yield from self._data.items()

    def __repr__(self):
        return "keyvals(%s)" % ", ".join("%s=%r" % pair for pair in self._data.items())


class Resolution(NamedTuple):
    """
    Successful resolution: flags, key/values and positional values in declared order.
    """
    flags: Flags
    keyvals: KeyValues
    positionals: tuple

    def unpack(self):
        """
        Return (flags, keyvals, *positionals), the classic output shape.
        """
        return (self.flags, self.keyvals, *self.positionals)


class Outcome:
    """
    Typed result of ArgHelper.resolve(): either a Resolution or a CallException.

    - ok: True when resolution succeeded.
    - value: the Resolution (Unset on failure).
    - fault: the CallException (Unset on success).
    - unwrap(**options): return the Resolution or trigger() the fault with the given
      options (raises outside shell mode; prints and returns None in shell mode).
    """
    __slots__ = ("_value", "_fault")

    value = property(lambda self: self._value)
    fault = property(lambda self: self._fault)

    def __init__(self, value=Unset, fault=Unset, /):
        if (value is Unset) == (fault is Unset):
            raise TypeError("Outcome() takes exactly one of value or fault")
        if fault is not Unset and not isinstance(fault, CallException):
            raise TypeError("Outcome() fault must be a call exception")
        self._value = value
        self._fault = fault

    @property
    def ok(self):
        return self._fault is Unset

    def unwrap(self, **options):
        if self.ok:
            return self._value
        trigger(self._fault, **options)

    def __bool__(self):
        return self.ok

    def __repr__(self):
        if self.ok:
            return "outcome(value=%r)" % (self._value,)
        return "outcome(fault=%s(%r))" % (type(self._fault).__name__, self._fault.message)


class Defaults:
    """
    Per-function default argument lists.

    A store is an explicit object: create one, share it between helpers if needed,
    and it lives as long as its owners. Lists are stored as tuples and prepended to
    the caller's arguments (after the schema's import-defaults) on every resolution
    for that function.
    """
    __slots__ = ("_store",)

    def __init__(self):
        self._store = {}

    def get(self, name, /):
        """
        Return the stored list for a function (an empty list when none is set).
        """
        return list(self._store.get(_sanitize_callfun(name), ()))

    def set(self, name, arglist, /):
        if isinstance(arglist, str) or not isinstance(arglist, Iterable):
            raise TypeError("Defaults.set() second argument must be an iterable of arguments")
        self._store[_sanitize_callfun(name)] = tuple(arglist)

    def all(self):
        return {name: list(arglist) for name, arglist in self._store.items()}

    def clear(self):
        self._store.clear()

    def __contains__(self, name):
        return name in self._store

    def __len__(self):
        return len(self._store)

    def __repr__(self):
        return "defaults(%s)" % ", ".join(map(repr, self._store))


def _sanitize_callfun(name, /):
    if not isinstance(name, str):
        raise TypeError("function names must be strings")
    elif not (name := name.strip()):
        raise ValueError("function names cannot be empty-strings")
    return name


def _sanitize_schema(schema, /):
    """
    Internal: accept a Schema or a classic definition mapping.

    A mapping may hold 'keyvals', 'flags', 'groups', 'import' (or 'imports') and
    'importdefaults' entries, as classic definitions do.
    """
    if isinstance(schema, Schema):
        return schema
    if not isinstance(schema, Mapping):
        raise TypeError("schema must be a Schema or a mapping of declarations")
    options = dict(schema)
    if "import" in options:
        options["imports"] = options.pop("import")
    if unknown := options.keys() - {"keyvals", "flags", "groups", "imports", "importdefaults"}:
        raise ValueError(f"schema mapping has unknown entries: {', '.join(sorted(unknown))}")
    return Schema(**options)


def _sanitize_posdepnames(posdepnames, schema, /):
    if isinstance(posdepnames, str) or not isinstance(posdepnames, Iterable):
        raise TypeError("positional names must be an iterable of strings")
    posdepnames = tuple(posdepnames)
    for name in posdepnames:
        if not isinstance(name, str):
            raise TypeError("positional names must be strings")
        if name not in schema._keyvals:
            raise ValueError(f"positional name {name!r} must be a declared key")
    return posdepnames


class ArgHelper:
    """
    Argument normalizer bound to a Defaults store.

    Parameters
    - defaults: Defaults, the per-function store (a fresh one when omitted).
    """
    __slots__ = ("_defaults",)

    defaults = property(lambda self: self._defaults)

    def __init__(self, defaults=Unset):
        if not isinstance(defaults := Defaults() if defaults is Unset else defaults, Defaults):
            raise TypeError("ArgHelper() 'defaults' must be a Defaults store")
        self._defaults = defaults

    def configure(self, mode, name=Unset, arglist=Unset, /):
        """
        Side channel on the defaults store.

        modes (case-insensitive)
        - "get": return the stored list for `name` (empty when none).
        - "set": store `arglist` for `name`.
        - "all": return every stored list keyed by function name.
        - "clearall": forget every stored list.
        """
        match mode.lower() if isinstance(mode, str) else mode:
            case "get":
                return self._defaults.get(name)
            case "set":
                return self._defaults.set(name, coalesce(arglist, ()))
            case "all":
                return self._defaults.all()
            case "clearall":
                return self._defaults.clear()
            case _:
                trigger(UnknownModeError(
                    "unknown defaults mode %r" % (mode,),
                    title="unknown mode",
                    code=FaultCode.UNKNOWN_MODE,
                    hint="use one of 'get', 'set', 'all' or 'clearall'",
                    docs=getdoc(FaultCode.UNKNOWN_MODE),
                ))

    def resolve(self, posdepnames, schema, arglist, callfun=Unset, /):
        """
        Resolve raw call arguments against a schema.

        Parameters
        - posdepnames: Iterable[str], names of the positional parameters (declared keys).
        - schema: Schema | Mapping, the declared parameter surface.
        - arglist: Sequence, the raw call arguments.
        - callfun: str, the calling function's name (the Python caller when omitted);
          it keys the defaults store and prefixes fault messages.

        Returns
        - Outcome holding a Resolution or the CallException describing the bad call.

        Raises
        - TypeError / ValueError for a malformed schema or positional names (programming
          errors of the declaring function, not of its caller).
        """
        schema = _sanitize_schema(schema)
        posdepnames = _sanitize_posdepnames(posdepnames, schema)
        callfun = _sanitize_callfun(coalesce(callfun, caller(1)))
        if isinstance(arglist, str) or not isinstance(arglist, Sequence):
            raise TypeError("resolve() argument list must be a sequence")

        def fault(exception, message, **options):
            return Outcome(Unset, exception("%s: %s" % (callfun, message), caller=callfun, **options))

        # Position of the first string (1-based); one past the end when there is none.
        first = next((index for index, token in enumerate(arglist, 1) if isinstance(token, str)), len(arglist) + 1)

        if first > len(posdepnames) + 1:
            return fault(
                TooManyPositionalsError,
                "too many positional arguments (expected at most %d before the first parameter name, got %d)" % (
                    len(posdepnames), first - 1
                ),
                title="too many positional arguments",
                code=FaultCode.TOO_MANY_POSITIONALS,
                index=len(posdepnames) + 1,
                hint="pass the extra values by name (for example: 'key', value)",
                docs=getdoc(FaultCode.TOO_MANY_POSITIONALS),
            )

        keyvals = dict(schema._keyvals)
        for name, value in zip(posdepnames, arglist[:min(len(posdepnames), first - 1)]):
            keyvals[name] = value

        flags = Flags.fromschema(schema)
        reverse = {flag: group for group, members in schema._flags.items() for flag in members}

        # Each token travels with the chain of aliases that produced it.
        stream = deque((token, ()) for token in arglist[first - 1:])
        if callfun in self._defaults:
            stream.extendleft((token, ()) for token in reversed(self._defaults.get(callfun)))
        stream.extendleft((token, ()) for token in reversed(schema._importdefaults))

        while stream:
            token, chain = stream.popleft()

            if not isinstance(token, str):
                return fault(
                    NonStringParameterError,
                    "parameter is not a string, it is of type %s" % type(token).__name__,
                    title="parameter is not a string",
                    code=FaultCode.NON_STRING_PARAMETER,
                    token=token,
                    hint="positional values must come first; name every other value with its key",
                    docs=getdoc(FaultCode.NON_STRING_PARAMETER),
                )

            if token in reverse:
                group = reverse[token]
                flags._select(group, token, schema._flags[group])
            elif token in schema._keyvals:
                if not stream:
                    return fault(
                        MissingValueError,
                        "missing value for key %r" % token,
                        title="missing value",
                        code=FaultCode.MISSING_VALUE,
                        token=token,
                        hint="pass the value right after the key (for example: %r, value)" % token,
                        docs=getdoc(FaultCode.MISSING_VALUE),
                    )
                keyvals[token], _ = stream.popleft()
            elif token in schema._groups:
                if token in chain:
                    return fault(
                        CyclicGroupError,
                        "group %r expands into itself (%s)" % (token, " → ".join((*chain, token))),
                        title="cyclic group",
                        code=FaultCode.CYCLIC_GROUP,
                        token=token,
                        chain=chain,
                        hint="remove %r from the expansion of %r" % (token, chain[-1]),
                        docs=getdoc(FaultCode.CYCLIC_GROUP),
                    )
                stream.extendleft((item, (*chain, token)) for item in reversed(schema._groups[token]))
            elif token == ARGIMPORT:
                if len(stream) < 2:
                    return fault(
                        MissingValueError,
                        "%r expects a flags mapping and a key/values mapping" % ARGIMPORT,
                        title="missing value",
                        code=FaultCode.MISSING_VALUE,
                        token=token,
                        hint="pass both mappings right after %r" % ARGIMPORT,
                        docs=getdoc(FaultCode.MISSING_VALUE),
                    )
                (imported, _), (values, _) = stream.popleft(), stream.popleft()
                if not isinstance(imported, Mapping) or not isinstance(values, Mapping):
                    return fault(
                        InvalidImportError,
                        "%r operands must be mappings, got %s and %s" % (
                            ARGIMPORT, type(imported).__name__, type(values).__name__
                        ),
                        title="invalid import",
                        code=FaultCode.INVALID_IMPORT,
                        token=token,
                        hint="forward the flags and keyvals of another resolution",
                        docs=getdoc(FaultCode.INVALID_IMPORT),
                    )
                flags._data.update(imported)
                keyvals.update(values)
            else:
                names = [*reverse, *schema._keyvals, *schema._groups]
                suggestions = difflib.get_close_matches(token, names, 5)
                try:
                    hint = "did you mean %r?" % suggestions[0]
                except IndexError:
                    hint = "use one of the declared flags, keys or groups"
                return fault(
                    UnknownParameterError,
                    "unknown parameter %r" % token,
                    title="unknown parameter",
                    code=FaultCode.UNKNOWN_PARAMETER,
                    token=token,
                    suggestions=suggestions,
                    hint=hint,
                    docs=getdoc(FaultCode.UNKNOWN_PARAMETER),
                )

        return Outcome(Resolution(
            flags,
            KeyValues(keyvals),
            tuple(keyvals[name] for name in posdepnames),
        ))

    def __call__(self, posdepnames, schema=Unset, arglist=Unset, callfun=Unset, /):
        """
        Resolve and unwrap: return (flags, keyvals, *positionals) or raise the fault.

        When the first argument is a mode string, dispatch to configure() instead:
            helper("set", "myfunction", ["nodata"])
        """
        if isinstance(posdepnames, str):
            return self.configure(posdepnames, schema, arglist)
        outcome = self.resolve(posdepnames, schema, coalesce(arglist, ()), coalesce(callfun, caller(1)))
        return outcome.unwrap().unpack()

    def __repr__(self):
        return "arghelper(defaults=%r)" % (self._defaults,)


__all__ = (
    "Flags",
    "KeyValues",
    "Resolution",
    "Outcome",
    "Defaults",
    "ArgHelper",
)
