########################################################################
# File name: config.py
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
:mod:`~aiocomponent.config` --- Configuration files

Components are configured with INI files, read with :mod:`configparser`:

.. code-block:: ini

   [global]
   ; optional, passed to logging.config.fileConfig
   logging = /etc/mycomponent/logging.ini

   [component]
   host = localhost
   port = 5347
   xmpp_host = echo.example.org
   secret = s3cret

.. autoclass:: ComponentConfig

.. autofunction:: load

.. autofunction:: from_parser

.. autofunction:: configure_logging

"""
import collections
import configparser
import logging
import logging.config

from . import errors


#: Port used when the ``[component]`` section has no ``port`` option.
DEFAULT_PORT = 5347

SECTION = "component"


ComponentConfig = collections.namedtuple(
    "ComponentConfig",
    [
        "server_address",
        "xmpp_host",
        "xmpp_secret",
    ]
)


def _get_required(parser, option):
    try:
        value = parser.get(SECTION, option)
    except configparser.NoOptionError:
        raise errors.ConfigurationError(
            "missing option {!r} in [{}]".format(option, SECTION)
        ) from None
    if not value:
        raise errors.ConfigurationError(
            "option {!r} in [{}] must not be empty".format(option, SECTION)
        )
    return value


def from_parser(parser):
    """
    Build a :class:`ComponentConfig` from the ``[component]`` section of the
    :class:`configparser.ConfigParser` `parser`.

    :raises aiocomponent.errors.ConfigurationError: if the section or one of
        the required options is missing, or if the port is not a number.
    """
    if not parser.has_section(SECTION):
        raise errors.ConfigurationError(
            "missing section [{}]".format(SECTION)
        )

    host = _get_required(parser, "host")
    try:
        port = parser.getint(SECTION, "port", fallback=DEFAULT_PORT)
    except ValueError:
        raise errors.ConfigurationError(
            "option 'port' in [{}] must be an integer".format(SECTION)
        ) from None

    return ComponentConfig(
        server_address=(host, port),
        xmpp_host=_get_required(parser, "xmpp_host"),
        xmpp_secret=_get_required(parser, "secret"),
    )


def load(source):
    """
    Read the configuration from `source`, which is either a path or an open
    text file, and return a :class:`ComponentConfig`.
    """
    parser = read_parser(source)
    return from_parser(parser)


def read_parser(source):
    parser = configparser.ConfigParser()
    try:
        if isinstance(source, str):
            with open(source, "r") as f:
                parser.read_file(f)
        else:
            parser.read_file(source)
    except configparser.Error as exc:
        raise errors.ConfigurationError(
            "malformed configuration: {}".format(exc)
        ) from exc
    return parser


def configure_logging(parser, verbosity=0):
    """
    Set up logging. If the ``[global]`` section names a ``logging`` file, it
    is passed to :func:`logging.config.fileConfig`. Otherwise
    :func:`logging.basicConfig` is used with a level derived from
    `verbosity` (the number of ``-v`` flags).
    """
    if parser.has_option("global", "logging"):
        logging.config.fileConfig(
            parser.get("global", "logging")
        )
    else:
        logging.basicConfig(
            level={
                0: logging.ERROR,
                1: logging.WARNING,
                2: logging.INFO,
            }.get(verbosity, logging.DEBUG)
        )
