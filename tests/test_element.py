########################################################################
# File name: test_element.py
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

import aiocomponent.element as element

from aiocomponent.utils import etree, namespaces


TEST_NS = "urn:example:test"


class TestXMLElement(unittest.TestCase):
    def setUp(self):
        self.el = element.XMLElement("foo", TEST_NS)

    def test_name_and_namespace(self):
        self.assertEqual(self.el.name, "foo")
        self.assertEqual(self.el.namespace, TEST_NS)
        self.assertEqual(self.el.tag, "{urn:example:test}foo")

    def test_null_namespace(self):
        el = element.XMLElement("foo")
        self.assertEqual(el.name, "foo")
        self.assertIsNone(el.namespace)
        self.assertEqual(el.tag, "foo")

    def test_wraps_lxml_node(self):
        node = etree.Element("{urn:example:test}bar")
        el = element.XMLElement(node)
        self.assertIs(el.xml, node)
        self.assertEqual(el.name, "bar")

    def test_wrapping_rejects_namespace(self):
        node = etree.Element("bar")
        with self.assertRaises(TypeError):
            element.XMLElement(node, TEST_NS)

    def test_equality_is_identity_of_node(self):
        other = element.XMLElement(self.el.xml)
        self.assertEqual(self.el, other)
        self.assertEqual(hash(self.el), hash(other))
        self.assertNotEqual(self.el, element.XMLElement("foo", TEST_NS))

    def test_parent_and_root(self):
        self.assertIsNone(self.el.parent)
        self.assertEqual(self.el.root, self.el)

        child = self.el.add_child("bar", TEST_NS)
        grandchild = child.add_child("baz", TEST_NS)

        self.assertEqual(child.parent, self.el)
        self.assertEqual(grandchild.parent, child)
        self.assertEqual(grandchild.root, self.el)

    def test_attributes(self):
        self.assertIsNone(self.el.get_attribute("a"))
        self.assertEqual(self.el.get_attribute("a", "x"), "x")
        self.assertFalse(self.el.has_attribute("a"))

        self.el.set_attribute("a", "1")
        self.el.set_attribute("a", "2")
        self.assertEqual(self.el.get_attribute("a"), "2")
        self.assertTrue(self.el.has_attribute("a"))

    def test_set_attribute_None_removes(self):
        self.el.set_attribute("a", "1")
        self.el.set_attribute("a", None)
        self.assertFalse(self.el.has_attribute("a"))

        # no error for missing attributes
        self.el.set_attribute("a", None)

    def test_remove_attribute(self):
        self.el.set_attribute("a", "1")
        self.el.remove_attribute("a")
        self.assertFalse(self.el.has_attribute("a"))

    def test_attributes_is_ordered_copy(self):
        self.el.set_attribute("b", "1")
        self.el.set_attribute("a", "2")
        attrs = self.el.attributes
        self.assertEqual(list(attrs.items()), [("b", "1"), ("a", "2")])
        attrs["c"] = "3"
        self.assertFalse(self.el.has_attribute("c"))

    def test_add_child_by_name(self):
        child = self.el.add_child("bar", TEST_NS)
        self.assertEqual(child.name, "bar")
        self.assertEqual(child.namespace, TEST_NS)
        self.assertEqual(self.el.get_children(), [child])

    def test_add_child_copies_elements(self):
        source = element.XMLElement("bar", TEST_NS)
        source.add_child("baz", TEST_NS)

        copy = self.el.add_child(source)
        self.assertNotEqual(copy, source)
        self.assertIsNone(source.parent)
        self.assertEqual(copy.parent, self.el)

        source.set_attribute("a", "1")
        self.assertFalse(copy.has_attribute("a"))
        self.assertEqual(len(copy.get_children()), 1)

    def test_add_child_rejects_namespace_for_elements(self):
        with self.assertRaises(TypeError):
            self.el.add_child(element.XMLElement("bar"), TEST_NS)

    def test_get_first_child_wildcards(self):
        a = self.el.add_child("a", TEST_NS)
        b = self.el.add_child("b", "urn:example:other")
        a2 = self.el.add_child("a", "urn:example:other")

        self.assertEqual(self.el.get_first_child(), a)
        self.assertEqual(self.el.get_first_child("b"), b)
        self.assertEqual(
            self.el.get_first_child(namespace="urn:example:other"),
            b,
        )
        self.assertEqual(
            self.el.get_first_child("a", "urn:example:other"),
            a2,
        )
        self.assertIsNone(self.el.get_first_child("c"))

    def test_get_children(self):
        a = self.el.add_child("a", TEST_NS)
        self.el.add_child("b", TEST_NS)
        a2 = self.el.add_child("a", TEST_NS)

        self.assertEqual(self.el.get_children("a"), [a, a2])
        self.assertEqual(len(self.el.get_children()), 3)
        self.assertEqual(self.el.get_children("a", "urn:example:other"), [])

    def test_null_namespace_lookup(self):
        child = self.el.add_child("a")
        self.assertIsNone(child.namespace)
        self.assertEqual(self.el.get_first_child("a", None), child)
        self.assertIsNone(self.el.get_first_child("a", TEST_NS))

    def test_has_child(self):
        self.assertFalse(self.el.has_child("a"))
        self.el.add_child("a", TEST_NS)
        self.assertTrue(self.el.has_child("a"))
        self.assertTrue(self.el.has_child("a", TEST_NS))
        self.assertFalse(self.el.has_child("a", "urn:example:other"))

    def test_remove_child(self):
        a = self.el.add_child("a", TEST_NS)
        self.el.remove_child(a)
        self.assertEqual(self.el.get_children(), [])

        with self.assertRaises(ValueError):
            self.el.remove_child(a)

    def test_text(self):
        self.assertEqual(self.el.text, "")
        self.el.text = "foo"
        self.assertEqual(self.el.text, "foo")

    def test_text_concatenates_descendants(self):
        self.el.text = "a"
        child = self.el.add_child("b", TEST_NS)
        child.text = "b"
        child.xml.tail = "c"
        self.assertEqual(self.el.text, "abc")

    def test_text_setter_replaces_children(self):
        self.el.add_child("b", TEST_NS).text = "x"
        self.el.text = "foo"
        self.assertEqual(self.el.get_children(), [])
        self.assertEqual(self.el.text, "foo")

    def test_get_child_text(self):
        self.assertIsNone(self.el.get_child_text("a"))
        self.assertEqual(self.el.get_child_text("a", default="x"), "x")
        self.el.add_child("a", TEST_NS).text = "foo"
        self.assertEqual(self.el.get_child_text("a"), "foo")
        self.assertEqual(self.el.get_child_text("a", TEST_NS), "foo")
        self.assertIsNone(self.el.get_child_text("a", "urn:example:other"))

    def test_set_child_text_creates_in_namespace(self):
        child = self.el.set_child_text("a", "foo", TEST_NS)
        self.assertEqual(child.namespace, TEST_NS)
        self.assertEqual(self.el.get_child_text("a", TEST_NS), "foo")

    def test_set_child_text_wildcard_creates_in_null_namespace(self):
        child = self.el.set_child_text("a", "foo")
        self.assertIsNone(child.namespace)

    def test_set_child_text_wildcard_updates_any_namespace(self):
        existing = self.el.add_child("a", "urn:example:other")
        child = self.el.set_child_text("a", "foo")
        self.assertEqual(child, existing)
        self.assertEqual(len(self.el.get_children()), 1)

    def test_set_child_text_scoped_to_namespace(self):
        self.el.add_child("a", "urn:example:other")
        self.el.set_child_text("a", "foo", TEST_NS)
        self.assertEqual(len(self.el.get_children("a")), 2)
        self.assertEqual(
            self.el.get_child_text("a", "urn:example:other"),
            ""
        )
        self.assertEqual(self.el.get_child_text("a", TEST_NS), "foo")

    def test_set_child_text_None_removes(self):
        self.el.set_child_text("a", "foo", TEST_NS)
        self.assertIsNone(self.el.set_child_text("a", None, TEST_NS))
        self.assertFalse(self.el.has_child("a"))

        # removing a missing child is fine
        self.el.set_child_text("a", None, TEST_NS)

    def test_str_serialises(self):
        self.el.set_attribute("b", "2")
        self.el.set_attribute("a", "1")
        self.el.add_child("bar", TEST_NS).text = "x<y"
        self.assertEqual(
            str(self.el),
            '<foo xmlns="urn:example:test" a="1" b="2">'
            '<bar>x&lt;y</bar></foo>'
        )

    def test_str_undeclares_default_namespace_for_null_children(self):
        self.el.add_child("bar")
        self.assertEqual(
            str(self.el),
            '<foo xmlns="urn:example:test"><bar xmlns=""/></foo>'
        )


class Testfromstring(unittest.TestCase):
    def test_parses_str(self):
        el = element.fromstring(
            '<foo xmlns="urn:example:test" a="1"><bar>x</bar></foo>'
        )
        self.assertIsInstance(el, element.XMLElement)
        self.assertEqual(el.tag, "{urn:example:test}foo")
        self.assertEqual(el.get_attribute("a"), "1")
        self.assertEqual(el.get_child_text("bar", TEST_NS), "x")

    def test_parses_bytes(self):
        el = element.fromstring(b"<foo/>")
        self.assertEqual(el.tag, "foo")

    def test_tostring(self):
        el = element.fromstring('<foo xmlns="urn:example:test"><bar/></foo>')
        self.assertEqual(
            element.tostring(el),
            '<foo xmlns="urn:example:test"><bar/></foo>'
        )

    def test_does_not_expand_external_entities(self):
        el = element.fromstring(
            '<!DOCTYPE foo [<!ENTITY xxe SYSTEM "file:///etc/passwd">]>'
            '<foo>&xxe;</foo>'
        )
        self.assertNotIn("root:", el.text)


class TestXMLBuilder(unittest.TestCase):
    def test_create(self):
        builder = element.XMLBuilder.create("iq", namespaces.component_accept)
        el = builder.get_xml()
        self.assertEqual(el.name, "iq")
        self.assertEqual(el.namespace, namespaces.component_accept)
        self.assertEqual(builder.element, el)

    def test_chain(self):
        el = (element.XMLBuilder.create("iq", namespaces.component_accept)
              .attribute("type", "get")
              .child("query", namespaces.xep0030_info)
              .attribute("node", "foo")
              .child_text("bar", "baz", namespaces.xep0030_info)
              .parent()
              .attribute("id", "x")
              .get_xml())

        self.assertEqual(el.get_attribute("type"), "get")
        self.assertEqual(el.get_attribute("id"), "x")
        query = el.get_first_child("query", namespaces.xep0030_info)
        self.assertEqual(query.get_attribute("node"), "foo")
        self.assertEqual(
            query.get_child_text("bar", namespaces.xep0030_info),
            "baz"
        )

    def test_get_xml_returns_root_from_anywhere(self):
        builder = element.XMLBuilder.create("a")
        root = builder.get_xml()
        inner = builder.child("b").child("c")
        self.assertEqual(inner.get_xml(), root)

    def test_text(self):
        el = element.XMLBuilder.create("a").text("foo").get_xml()
        self.assertEqual(el.text, "foo")

    def test_child_element_copies_and_stays(self):
        source = element.XMLElement("b")
        builder = element.XMLBuilder.create("a")
        result = builder.child_element(source)
        self.assertIs(result, builder)
        children = builder.get_xml().get_children()
        self.assertEqual(len(children), 1)
        self.assertNotEqual(children[0], source)

    def test_parent_at_root_raises(self):
        with self.assertRaises(ValueError):
            element.XMLBuilder.create("a").parent()
