import asyncio
import json
import unittest

from aiohttp import WSCloseCode, test_utils, web

from cidash.channels import WebSocketChannel, websocket_channel_factory
from cidash.entities import ConnectivityState
from cidash.services.connectivity import CHANNEL_ERROR_MESSAGE, ConnectivityMonitor
from cidash.services.exceptions import NetworkFailure


class Recorder:
    def __init__(self):
        self.frames = []
        self.errors = []
        self.closed = []
        self.done = asyncio.Event()

    def on_frame(self, raw):
        self.frames.append(json.loads(raw))

    def on_error(self, exc):
        self.errors.append(exc)
        self.done.set()

    def on_close(self, clean):
        self.closed.append(clean)
        self.done.set()


class TestWebSocketChannel(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.close_code = WSCloseCode.OK
        self.hold = asyncio.Event()

        async def status(request):
            ws = web.WebSocketResponse()
            await ws.prepare(request)
            await ws.send_str(json.dumps({"status": "connecting", "message": "Connecting to registry..."}))
            await ws.send_str(json.dumps({"status": "success", "message": "Registry reachable"}))
            if request.query.get("hold"):
                await self.hold.wait()
            await ws.close(code=self.close_code)
            return ws

        app = web.Application()
        app.router.add_get("/registries/3/test-connection-ws", status)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        self.url = str(self.server.make_url("/registries/3/test-connection-ws")).replace("http://", "ws://", 1)

    async def asyncTearDown(self):
        self.hold.set()
        await self.server.close()

    async def open(self, url=None):
        recorder = Recorder()
        channel = WebSocketChannel()
        await channel.open(url or self.url, recorder.on_frame, recorder.on_error, recorder.on_close)
        return channel, recorder

    async def test_frames_then_clean_close(self):
        channel, recorder = await self.open()

        await asyncio.wait_for(recorder.done.wait(), timeout=5)

        self.assertEqual([f["status"] for f in recorder.frames], ["connecting", "success"])
        self.assertEqual(recorder.closed, [True])
        self.assertEqual(recorder.errors, [])
        await channel.close()

    async def test_abnormal_close_code(self):
        self.close_code = WSCloseCode.INTERNAL_ERROR
        channel, recorder = await self.open()

        await asyncio.wait_for(recorder.done.wait(), timeout=5)

        self.assertEqual(recorder.closed, [False])
        await channel.close()

    async def test_close_suppresses_callbacks(self):
        channel, recorder = await self.open(self.url + "?hold=1")
        for _ in range(100):
            if len(recorder.frames) == 2:
                break
            await asyncio.sleep(0.01)

        await channel.close()
        self.hold.set()
        await asyncio.sleep(0.05)

        self.assertEqual(recorder.closed, [])
        self.assertEqual(recorder.errors, [])

    async def test_unreachable_host_reports_error(self):
        await self.server.close()
        channel, recorder = await self.open()

        await asyncio.wait_for(recorder.done.wait(), timeout=5)

        self.assertEqual(len(recorder.errors), 1)
        self.assertEqual(recorder.closed, [])
        await channel.close()

    async def test_monitor_releases_errored_channel(self):
        await self.server.close()
        monitor = ConnectivityMonitor(3, self.url, websocket_channel_factory(), testing_timeout=0)

        await monitor.start()
        for _ in range(500):
            if monitor.state == ConnectivityState.ERROR:
                break
            await asyncio.sleep(0.01)

        self.assertEqual(monitor.status.message, CHANNEL_ERROR_MESSAGE)
        self.assertFalse(monitor.channel_open)
        await asyncio.wait_for(monitor.stop(), timeout=5)

    async def test_rejects_non_websocket_url(self):
        with self.assertRaises(NetworkFailure):
            await WebSocketChannel().open("http://backend.test/x", print, print, print)

    async def test_cannot_reopen(self):
        channel, recorder = await self.open()
        with self.assertRaises(NetworkFailure):
            await channel.open(self.url, recorder.on_frame, recorder.on_error, recorder.on_close)
        await channel.close()


if __name__ == "__main__":
    unittest.main()
