"""
Tests for the internal helpers.

This module verifies:
- The Unset sentinel (singleton identity, falsy semantics, finality, union support).
- coalesce() replacing only Unset.
- rename() in both direct and decorator forms.
- mirror() exposing copies of private containers.
- caller() reporting the calling function's name.
"""
import copy
import unittest
from unittest import TestCase

from sofakit.utils import *


class UnsetTest(TestCase):
    """
    Test suite for the `UnsetType` singleton.
    """

    def testSingleton(self) -> None:
        """
        The constructor returns the exported instance on every call.
        """
        self.assertIs(UnsetType(), Unset)
        self.assertIs(UnsetType(), UnsetType())

    def testFalsely(self) -> None:
        """
        The sentinel is falsy but not equal to other falsy values.
        """
        self.assertFalse(bool(Unset))
        self.assertNotEqual(Unset, None)
        self.assertNotEqual(Unset, False)  # noqa: E712

    def testRepr(self) -> None:
        self.assertEqual(repr(Unset), "Unset")

    def testCopyDeepcopyPreserveSingleton(self) -> None:
        """
        copy() and deepcopy() preserve the identity of the singleton.
        """
        self.assertIs(copy.copy(Unset), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)

    def testUnion(self) -> None:
        """
        The instance takes part in annotations unions as its type.
        """
        self.assertEqual(str | Unset, str | UnsetType)

    def testFinalClass(self) -> None:
        """
        The class is final: attempts to subclass must fail with TypeError.
        """
        with self.assertRaises(TypeError):
            type("UnsetType", (UnsetType,), {})


class CoalesceTest(TestCase):
    def testReplacesUnset(self) -> None:
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))

    def testPreservesFalsyValues(self) -> None:
        """
        None, 0, "" and [] are legitimate values and must survive.
        """
        for value in (None, 0, "", []):
            with self.subTest(value=value):
                self.assertIs(coalesce(value, "fallback"), value)


class RenameTest(TestCase):
    def testDirect(self) -> None:
        def function():
            pass

        self.assertIs(rename(function, "renamed"), function)
        self.assertEqual(function.__name__, "renamed")
        self.assertEqual(function.__qualname__, "renamed")

    def testDecorator(self) -> None:
        @rename("renamed")
        def function():
            pass

        self.assertEqual(function.__name__, "renamed")

    def testErrors(self) -> None:
        with self.assertRaises(TypeError):
            rename(42, "name")
        with self.assertRaises(TypeError):
            rename(lambda: None, 42)
        with self.assertRaises(TypeError):
            rename(len, "length")
        with self.assertRaises(TypeError):
            rename()


class MirrorTest(TestCase):
    def setUp(self) -> None:
        class Holder:
            items = mirror("items")

            def __init__(self):
                self._items = {"group": ("a", "b")}

        self.holder = Holder()

    def testCopies(self) -> None:
        """
        The mirror is a fresh copy: tuples become lists and mutations do not leak back.
        """
        items = self.holder.items
        self.assertEqual(items, {"group": ["a", "b"]})
        items["group"].append("c")
        self.assertEqual(self.holder._items, {"group": ("a", "b")})

    def testReadOnly(self) -> None:
        with self.assertRaises(AttributeError):
            self.holder.items = {}

    def testName(self) -> None:
        with self.assertRaises(TypeError):
            mirror(42)


class CallerTest(TestCase):
    def testDepth(self) -> None:
        """
        caller(0) names the current function, caller(1) its caller.
        """
        def inner():
            return caller(0), caller(1)

        def outer():
            return inner()

        self.assertEqual(outer(), ("inner", "outer"))

    def testBeyondTheStack(self) -> None:
        self.assertEqual(caller(100_000), "<module>")

    def testInvalidDepth(self) -> None:
        with self.assertRaises(TypeError):
            caller(-1)
        with self.assertRaises(TypeError):
            caller("1")


if __name__ == '__main__':
    unittest.main()
