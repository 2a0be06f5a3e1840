########################################################################
# File name: test_service.py
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
import asyncio
import logging
import unittest
import unittest.mock

import aiocomponent.component as component
import aiocomponent.errors as errors
import aiocomponent.protocol as protocol
import aiocomponent.service as service
import aiocomponent.stanza as stanza
import aiocomponent.structs as structs

from aiocomponent.testutils import run_coroutine, get_timeout


TEST_HOST = "echo.example.test"
TEST_SECRET = "s3cret"
TEST_DIGEST = b"31998b73ea3a9f9924c37e68133695467a6701e6"

PEER_STREAM_HEADER = (
    b"<stream:stream xmlns='jabber:component:accept' "
    b"xmlns:stream='http://etherx.jabber.org/streams' "
    b"from='echo.example.test' id='abc'>"
)


class RecordingComponent(component.Component):
    def __init__(self):
        super().__init__()
        self.events = []
        self.messages = []

    def get_name(self):
        return "Recording"

    def get_description(self):
        return "Records everything"

    def handle_message(self, msg):
        self.messages.append(msg)
        reply = msg.make_reply()
        reply.body = msg.body
        self.send(reply)

    def connected(self):
        self.events.append("connected")

    def will_disconnect(self):
        self.events.append("will_disconnect")

    def disconnected(self):
        self.events.append("disconnected")


class Testparse_server_address(unittest.TestCase):
    def test_tuple(self):
        self.assertEqual(
            service.parse_server_address(("localhost", 5347)),
            ("localhost", 5347),
        )

    def test_tuple_with_string_port(self):
        self.assertEqual(
            service.parse_server_address(("localhost", "5348")),
            ("localhost", 5348),
        )

    def test_string(self):
        self.assertEqual(
            service.parse_server_address("xmpp.example.test:5347"),
            ("xmpp.example.test", 5347),
        )

    def test_ipv6_literal(self):
        self.assertEqual(
            service.parse_server_address("[::1]:5347"),
            ("::1", 5347),
        )

    def test_rejects_malformed(self):
        for value in ["localhost", ":5347", "localhost:", "localhost:x",
                      "localhost:0", "localhost:65536", ("localhost", ),
                      ("", 5347), None, 5347]:
            with self.assertRaises(errors.ConfigurationError,
                                   msg=repr(value)):
                service.parse_server_address(value)


class Test_parent_domain(unittest.TestCase):
    def test_subdomain(self):
        self.assertEqual(
            service._parent_domain(structs.JID.fromstr(TEST_HOST)),
            structs.JID.fromstr("example.test"),
        )

    def test_second_level_domain_is_kept(self):
        jid = structs.JID.fromstr("example.test")
        self.assertEqual(service._parent_domain(jid), jid)

    def test_single_label(self):
        jid = structs.JID.fromstr("localhost")
        self.assertEqual(service._parent_domain(jid), jid)


class TestComponentServiceInit(unittest.TestCase):
    def test_defaults(self):
        s = service.ComponentService(
            RecordingComponent(),
            "localhost:5347",
            TEST_HOST,
            TEST_SECRET,
        )
        self.assertEqual(s.server_address, ("localhost", 5347))
        self.assertEqual(s.xmpp_host, structs.JID.fromstr(TEST_HOST))
        self.assertEqual(s.server_jid, structs.JID.fromstr("example.test"))
        self.assertIsNone(s.stream)
        self.assertIsNone(s.dispatcher)
        self.assertFalse(s.running)

    def test_explicit_server_jid(self):
        s = service.ComponentService(
            RecordingComponent(),
            ("localhost", 5347),
            structs.JID.fromstr(TEST_HOST),
            TEST_SECRET,
            server_jid="xmpp.example.test",
        )
        self.assertEqual(s.server_jid,
                         structs.JID.fromstr("xmpp.example.test"))

    def test_rejects_missing_component(self):
        with self.assertRaises(errors.ConfigurationError):
            service.ComponentService(None, "localhost:5347",
                                     TEST_HOST, TEST_SECRET)

    def test_rejects_empty_secret(self):
        with self.assertRaises(errors.ConfigurationError):
            service.ComponentService(RecordingComponent(), "localhost:5347",
                                     TEST_HOST, "")

    def test_rejects_non_domain_host(self):
        for host in ["", None, "user@example.test", "example.test/res"]:
            with self.assertRaises(errors.ConfigurationError,
                                   msg=repr(host)):
                service.ComponentService(RecordingComponent(),
                                         "localhost:5347",
                                         host, TEST_SECRET)

    def test_rejects_invalid_server_jid(self):
        with self.assertRaises(errors.ConfigurationError):
            service.ComponentService(RecordingComponent(), "localhost:5347",
                                     TEST_HOST, TEST_SECRET,
                                     server_jid="@")


class TestComponentService(unittest.TestCase):
    def setUp(self):
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self.component = RecordingComponent()
        self.server_done = self.loop.create_future()
        self.server_script = self._accept_script
        self.server = run_coroutine(
            asyncio.start_server(self._handle_client, "127.0.0.1", 0),
            loop=self.loop,
        )
        port = self.server.sockets[0].getsockname()[1]
        self.service = service.ComponentService(
            self.component,
            ("127.0.0.1", port),
            TEST_HOST,
            TEST_SECRET,
            loop=self.loop,
        )

    def tearDown(self):
        self.server.close()
        run_coroutine(self.server.wait_closed(),
                      timeout=get_timeout(5.0),
                      loop=self.loop)
        self.loop.close()
        asyncio.set_event_loop(None)

    async def _handle_client(self, reader, writer):
        try:
            received = await self.server_script(reader, writer)
        except Exception as exc:
            if not self.server_done.done():
                self.server_done.set_exception(exc)
        else:
            if not self.server_done.done():
                self.server_done.set_result(received)
        finally:
            writer.close()

    async def _handshake(self, reader, writer):
        header = await reader.readuntil(b">")
        self.assertIn(b'to="echo.example.test"', header)
        writer.write(PEER_STREAM_HEADER)
        handshake = await reader.readuntil(b"</handshake>")
        self.assertEqual(
            handshake,
            b"<handshake>" + TEST_DIGEST + b"</handshake>",
        )

    async def _accept_script(self, reader, writer):
        await self._handshake(reader, writer)
        writer.write(b"<handshake/>")
        await writer.drain()
        return await reader.read()

    async def _echo_script(self, reader, writer):
        await self._handshake(reader, writer)
        writer.write(
            b"<handshake/>"
            b"<message from='user@example.test/res' to='echo.example.test'"
            b" type='chat' id='m1'><body>hi</body></message>"
        )
        await writer.drain()
        return await reader.read()

    async def _reject_script(self, reader, writer):
        await self._handshake(reader, writer)
        writer.write(
            b"<stream:error>"
            b"<not-authorized xmlns='urn:ietf:params:xml:ns:xmpp-streams'/>"
            b"</stream:error></stream:stream>"
        )
        await writer.drain()
        return await reader.read()

    def _wait_server(self):
        return run_coroutine(asyncio.shield(self.server_done),
                             timeout=get_timeout(5.0),
                             loop=self.loop)

    def test_start_and_stop(self):
        run_coroutine(self.service.start(), loop=self.loop)

        self.assertTrue(self.service.running)
        self.assertEqual(self.service.stream.state, protocol.State.READY)
        self.assertEqual(self.component.events, ["connected"])
        self.assertEqual(self.component.jid, structs.JID.fromstr(TEST_HOST))
        self.assertEqual(self.component.server_jid,
                         structs.JID.fromstr("example.test"))

        run_coroutine(self.service.stop(), loop=self.loop)

        self.assertFalse(self.service.running)
        self.assertEqual(
            self.component.events,
            ["connected", "will_disconnect", "disconnected"],
        )
        self.assertEqual(self._wait_server(), b"</stream:stream>")

        with self.assertLogs("aiocomponent.component", "WARNING"):
            self.assertFalse(self.component.send(stanza.Message()))

    def test_start_twice_raises(self):
        run_coroutine(self.service.start(), loop=self.loop)
        with self.assertRaises(RuntimeError):
            run_coroutine(self.service.start(), loop=self.loop)
        run_coroutine(self.service.stop(), loop=self.loop)
        self._wait_server()

    def test_stop_when_not_running(self):
        run_coroutine(self.service.stop(), loop=self.loop)
        self.assertEqual(self.component.events, [])

    def test_echo(self):
        self.server_script = self._echo_script
        run_coroutine(self.service.start(), loop=self.loop)
        run_coroutine(asyncio.sleep(get_timeout(0.1)), loop=self.loop)
        run_coroutine(self.service.stop(), loop=self.loop)

        self.assertEqual(len(self.component.messages), 1)
        self.assertEqual(self.component.messages[0].body, "hi")

        received = self._wait_server()
        self.assertIn(b"<body>hi</body>", received)
        self.assertIn(b'to="user@example.test/res"', received)
        self.assertTrue(received.endswith(b"</stream:stream>"))

    def test_handshake_rejected(self):
        self.server_script = self._reject_script
        with self.assertRaises(errors.StreamError) as ctx:
            run_coroutine(self.service.start(), loop=self.loop)

        self.assertEqual(ctx.exception.condition,
                         errors.StreamErrorCondition.NOT_AUTHORIZED)
        self.assertFalse(self.service.running)
        self.assertEqual(self.component.events, ["disconnected"])
        self._wait_server()

        with self.assertRaises(errors.StreamError):
            run_coroutine(self.service.wait_closed(), loop=self.loop)

    def test_connection_refused(self):
        self.server.close()
        run_coroutine(self.server.wait_closed(), loop=self.loop)

        with self.assertRaises(OSError):
            run_coroutine(self.service.start(), loop=self.loop)
        self.assertIsNone(self.service.stream)
        self.assertFalse(self.service.running)

    def test_run_stops_on_peer_close(self):
        async def script(reader, writer):
            await self._handshake(reader, writer)
            writer.write(b"<handshake/>")
            await writer.drain()
            writer.write(b"</stream:stream>")
            await writer.drain()
            return await reader.read()

        self.server_script = script
        run_coroutine(self.service.run(),
                      timeout=get_timeout(5.0),
                      loop=self.loop)

        self.assertEqual(
            self.component.events,
            ["connected", "disconnected"],
        )
        self.assertEqual(self._wait_server(), b"</stream:stream>")


class TestComponentServiceLogging(unittest.TestCase):
    def test_uses_base_logger(self):
        base_logger = unittest.mock.Mock(spec=logging.Logger)
        s = service.ComponentService(
            RecordingComponent(),
            "localhost:5347",
            TEST_HOST,
            TEST_SECRET,
            base_logger=base_logger,
        )
        base_logger.getChild.assert_called_once_with("ComponentService")
        self.assertIs(s._logger, base_logger.getChild())
