########################################################################
# File name: utils.py
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
"""
:mod:`~aiocomponent.utils` --- Internal utils
=============================================

.. data:: namespaces

   The XML namespaces used by the component protocol and the service
   discovery replies, by short name.

.. autoclass:: Namespaces

.. autofunction:: to_nmtoken

"""

import base64

import lxml.etree as etree

__all__ = [
    "etree",
    "namespaces",
]


class Namespaces:
    """
    Registry of short names for XML namespaces:

    .. code-block:: python

        namespaces = Namespaces()
        namespaces.foo = "urn:example:foo"

    A namespace gets at most one short name and a short name can neither be
    rebound to another namespace (:class:`ValueError`) nor deleted
    (:class:`AttributeError`). Names starting with an underscore are plain
    attributes.
    """

    def __init__(self):
        self._names_by_uri = {}

    def __setattr__(self, name, uri):
        if not name.startswith("_"):
            bound_name = self._names_by_uri.get(uri, name)
            if bound_name != name:
                raise ValueError("namespace {} already defined as {}".format(
                    uri, bound_name
                ))
            if getattr(self, name, uri) != uri:
                raise ValueError("inconsistent namespace redefinition")
            self._names_by_uri[uri] = name
        super().__setattr__(name, uri)

    def __delattr__(self, name):
        if not name.startswith("_"):
            raise AttributeError("deleting short-hands is prohibited")
        super().__delattr__(name)


namespaces = Namespaces()
namespaces.xmlstream = "http://etherx.jabber.org/streams"
namespaces.component_accept = "jabber:component:accept"
namespaces.stanzas = "urn:ietf:params:xml:ns:xmpp-stanzas"
namespaces.streams = "urn:ietf:params:xml:ns:xmpp-streams"
namespaces.xml = "http://www.w3.org/XML/1998/namespace"
namespaces.xep0030_info = "http://jabber.org/protocol/disco#info"


def _b64_token(data):
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def to_nmtoken(rand_token):
    """
    Encode `rand_token` (:class:`bytes` or :class:`int`) as an XML NMTOKEN,
    suitable as a stanza id.

    Distinct inputs give distinct tokens: integers are prefixed with ``:``,
    which the URL-safe base64 alphabet lacks, and empty bytes become ``.``.
    """
    if isinstance(rand_token, int):
        length = (rand_token.bit_length() + 7) // 8
        return ":" + _b64_token(rand_token.to_bytes(length, "little"))
    if isinstance(rand_token, bytes):
        return _b64_token(rand_token) or "."
    raise TypeError("rand_token must be a bytes or int instance")
