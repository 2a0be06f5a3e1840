########################################################################
# File name: __main__.py
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
Run a demonstration component which echoes messages back to the sender::

    python -m aiocomponent -c component.ini -vv

See :mod:`aiocomponent.config` for the format of the configuration file.
"""
import argparse
import asyncio
import logging
import sys

from . import config, errors
from .component import Component
from .service import ComponentService


logger = logging.getLogger("aiocomponent.echo")


class EchoComponent(Component):
    def get_name(self):
        return "Echo"

    def get_description(self):
        return "Sends every message back to its sender"

    def handle_message(self, msg):
        if msg.type_.is_error or msg.body is None:
            return
        reply = msg.make_reply()
        reply.body = msg.body
        self.send(reply)

    def handle_presence(self, pres):
        logger.info("presence from %s: %s", pres.from_, pres.type_)


def make_argparser():
    parser = argparse.ArgumentParser(
        prog="aiocomponent",
        description="Run an echo component using the Jabber Component "
                    "Protocol",
    )
    parser.add_argument(
        "-c", "--config",
        required=True,
        type=argparse.FileType("r"),
        help="Configuration file to read",
    )
    parser.add_argument(
        "-v",
        help="Increase verbosity (this has no effect if a logging config"
        " file is specified in the config file)",
        default=0,
        dest="verbosity",
        action="count",
    )
    return parser


def main(argv=None):
    args = make_argparser().parse_args(argv)

    try:
        with args.config:
            parser = config.read_parser(args.config)
        config.configure_logging(parser, args.verbosity)
        cfg = config.from_parser(parser)
        service = ComponentService(
            EchoComponent(),
            cfg.server_address,
            cfg.xmpp_host,
            cfg.xmpp_secret,
        )
    except errors.ConfigurationError as exc:
        print("configuration error: {}".format(exc), file=sys.stderr)
        return 2

    try:
        asyncio.run(service.run())
    except KeyboardInterrupt:
        pass
    except (OSError, ConnectionError) as exc:
        logger.error("component terminated: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
