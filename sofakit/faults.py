"""
sofakit faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues.
  Codes are grouped by domain (argument resolution, crawler) so journal rows and
  searches stay predictable.
- CallException / CrawlerWarning: base types that carry message + options and
  know how to render themselves in a lowercased, actionable way.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Integration
- The argument normalizer never raises while resolving; it returns the fault inside
  an Outcome and the caller decides when to trigger() it.
- The crawler triggers its warnings in shell mode so they are printed and the crawl
  goes on; outside shell mode they go through warnings.warn.
"""
import copy
import inspect
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - argument resolution (221xx)
      • TOO_MANY_POSITIONALS, UNKNOWN_PARAMETER, NON_STRING_PARAMETER,
        MISSING_VALUE, INVALID_IMPORT, CYCLIC_GROUP, UNKNOWN_MODE
    - crawler (231xx)
      • LISTING_FAILED, DOWNLOAD_RETRY, DOWNLOAD_FAILED, LOAD_FAILED,
        SAVE_FAILED, ROUNDTRIP_WARNING
    """
    # --- argument resolution errors (22xxx) ---
    TOO_MANY_POSITIONALS        = 22111
    UNKNOWN_PARAMETER           = 22112
    NON_STRING_PARAMETER        = 22113
    MISSING_VALUE               = 22114
    INVALID_IMPORT              = 22115
    CYCLIC_GROUP                = 22116
    UNKNOWN_MODE                = 22121

    # --- crawler warnings (23xxx) ---
    LISTING_FAILED              = 23101
    DOWNLOAD_RETRY              = 23111
    DOWNLOAD_FAILED             = 23112
    LOAD_FAILED                 = 23121
    SAVE_FAILED                 = 23122
    ROUNDTRIP_WARNING           = 23123

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, /):
    """
    build the rich renderable shared by exceptions and warnings.

    the palette provides the default styles; a __styles__ mapping in __main__
    overrides them.
    """
    main = __import__("__main__")
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    options = fault.options
    colorful = options.get("colorful", True)
    fancy = options.get("fancy", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style])

    prog = text(getattr(main, "__prog__", options.get("caller", "sofakit")), "prog-name")
    code = options.get("code")

    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(code.normalize() if code is not None else "?", "code"),
        " | ",
        text(str(options.get("title", "fault")).title(), "title"),
        " ]"
    )
    message = text(fault.message, "message")
    hint = Text.assemble(text(" → ", "hint-arrow"), text(options.get("hint", ""), "hint"))

    if fancy:
        return Panel(Group(message, hint), title=header, title_align="left")
    return Group(header, message, hint)


class CallException(Exception):
    """
    base type for argument resolution faults.

    options usually carry: caller, code, title, hint, plus the offending token or
    index so hosts can report precisely.
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    def __str__(self):
        return self.message

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "title": "bold #FF4DA6",
            "message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class TooManyPositionalsError(CallException): ...
class UnknownParameterError(CallException): ...
class NonStringParameterError(CallException): ...
class MissingValueError(CallException): ...
class InvalidImportError(CallException): ...
class CyclicGroupError(CallException): ...
class UnknownModeError(CallException): ...


class CrawlerWarning(Warning):
    """
    base type for crawler warnings.

    options usually carry: code, title, hint, operation (download/load/save/listing)
    and link (the remote url or local file involved).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    def __str__(self):
        return self.message

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "title": "bold #FFC2E0",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ListingFailedWarning(CrawlerWarning): ...
class DownloadRetryWarning(CrawlerWarning): ...
class DownloadFailedWarning(CrawlerWarning): ...
class LoadFailedWarning(CrawlerWarning): ...
class SaveFailedWarning(CrawlerWarning): ...
class RoundTripWarning(CrawlerWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace() before triggering.
    - in shell mode, faults are rendered on the rich console; otherwise exceptions
      are raised and warnings go through warnings.warn.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ keyed by
    FaultCode; when not found, returns None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CallException",
    "TooManyPositionalsError",
    "UnknownParameterError",
    "NonStringParameterError",
    "MissingValueError",
    "InvalidImportError",
    "CyclicGroupError",
    "UnknownModeError",
    "CrawlerWarning",
    "ListingFailedWarning",
    "DownloadRetryWarning",
    "DownloadFailedWarning",
    "LoadFailedWarning",
    "SaveFailedWarning",
    "RoundTripWarning",
    "FaultCode",
    "trigger",
    "getdoc",
)
