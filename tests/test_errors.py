########################################################################
# File name: test_errors.py
# This file is part of: aiocomponent
#
# LICENSE
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as
# published by the Free Software Foundation, either version 3 of the
# License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# License along with this program.  If not, see
# <http://www.gnu.org/licenses/>.
#
########################################################################
import unittest

import aiocomponent.errors as errors
import aiocomponent.structs as structs

from aiocomponent.utils import namespaces


class TestStreamError(unittest.TestCase):
    def test_is_connection_error(self):
        self.assertTrue(issubclass(errors.StreamError, ConnectionError))

    def test_init(self):
        exc = errors.StreamError(
            errors.StreamErrorCondition.INVALID_FROM,
            "foo"
        )
        self.assertEqual(exc.condition,
                         errors.StreamErrorCondition.INVALID_FROM)
        self.assertEqual(exc.text, "foo")

    def test_init_from_tuple(self):
        exc = errors.StreamError(
            (namespaces.streams, "not-authorized"),
        )
        self.assertEqual(exc.condition,
                         errors.StreamErrorCondition.NOT_AUTHORIZED)
        self.assertIsNone(exc.text)

    def test_str(self):
        exc = errors.StreamError(
            errors.StreamErrorCondition.RESTRICTED_XML,
            "comments are not allowed"
        )
        self.assertEqual(
            str(exc),
            "stream error: {{{}}}restricted-xml "
            "('comments are not allowed')".format(namespaces.streams)
        )

    def test_conditions_in_streams_namespace(self):
        for member in errors.StreamErrorCondition:
            self.assertEqual(member.value[0], namespaces.streams)


class TestXMPPError(unittest.TestCase):
    def test_init(self):
        exc = errors.XMPPError(
            errors.ErrorCondition.FEATURE_NOT_IMPLEMENTED,
            text="nope",
        )
        self.assertEqual(exc.condition,
                         errors.ErrorCondition.FEATURE_NOT_IMPLEMENTED)
        self.assertEqual(exc.text, "nope")
        self.assertIsNone(exc.stanza)

    def test_init_from_tuple(self):
        exc = errors.XMPPCancelError(
            (namespaces.stanzas, "item-not-found"),
        )
        self.assertEqual(exc.condition,
                         errors.ErrorCondition.ITEM_NOT_FOUND)

    def test_init_rejects_unknown_condition(self):
        with self.assertRaises(ValueError):
            errors.XMPPCancelError((namespaces.stanzas, "fnord"))

    def test_str(self):
        exc = errors.XMPPCancelError(
            errors.ErrorCondition.ITEM_NOT_FOUND,
        )
        self.assertEqual(
            str(exc),
            "{{{}}}item-not-found".format(namespaces.stanzas)
        )

    def test_condition_is_read_only(self):
        exc = errors.XMPPCancelError(
            errors.ErrorCondition.ITEM_NOT_FOUND,
        )
        with self.assertRaises(AttributeError):
            exc.condition = errors.ErrorCondition.CONFLICT

    def test_types_of_subclasses(self):
        self.assertEqual(errors.XMPPAuthError.TYPE, structs.ErrorType.AUTH)
        self.assertEqual(errors.XMPPCancelError.TYPE,
                         structs.ErrorType.CANCEL)
        self.assertEqual(errors.XMPPModifyError.TYPE,
                         structs.ErrorType.MODIFY)
        self.assertEqual(errors.XMPPWaitError.TYPE, structs.ErrorType.WAIT)
        self.assertEqual(errors.XMPPContinueError.TYPE,
                         structs.ErrorType.CONTINUE)

    def test_exception_cls_map_covers_all_types(self):
        for type_ in structs.ErrorType:
            cls = errors.EXCEPTION_CLS_MAP[type_]
            self.assertEqual(cls.TYPE, type_)
            self.assertTrue(issubclass(cls, errors.XMPPError))

    def test_builtin_bases(self):
        self.assertTrue(issubclass(errors.XMPPAuthError, PermissionError))
        self.assertTrue(issubclass(errors.XMPPModifyError, ValueError))


class TestConfigurationError(unittest.TestCase):
    def test_is_value_error(self):
        self.assertTrue(issubclass(errors.ConfigurationError, ValueError))
