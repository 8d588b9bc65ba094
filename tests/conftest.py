from __future__ import annotations

import asyncio
import base64
import json
import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class FakeTelephony:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.close_calls = 0

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.close_calls += 1

    def events(self) -> list[dict]:
        return [json.loads(message) for message in self.sent]


class FakeUpstream:
    """Records outbound messages and replays queued inbound ones until closed."""

    def __init__(
        self,
        initial: list[dict] | None = None,
        *,
        fail_on_send: int | None = None,
        stall_on_send: int | None = None,
    ) -> None:
        self.sent: list[str] = []
        self.close_calls = 0
        self._fail_on_send = fail_on_send
        self._stall_on_send = stall_on_send
        self._incoming: asyncio.Queue[str | None] = asyncio.Queue()
        for message in initial or []:
            self.push(message)

    def push(self, message: dict | str) -> None:
        self._incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def finish(self) -> None:
        self._incoming.put_nowait(None)

    async def send(self, message: str) -> None:
        if self._fail_on_send is not None and len(self.sent) >= self._fail_on_send:
            raise ConnectionResetError("upstream went away")
        if self._stall_on_send is not None and len(self.sent) >= self._stall_on_send:
            await asyncio.Event().wait()
        self.sent.append(message)

    async def close(self) -> None:
        self.close_calls += 1
        self.finish()

    async def __aiter__(self):
        while True:
            message = await self._incoming.get()
            if message is None:
                return
            yield message

    def messages(self) -> list[dict]:
        return [json.loads(message) for message in self.sent]

    def types(self) -> list[str]:
        return [message["type"] for message in self.messages()]


class FakeConnector:
    def __init__(self, **upstream_kwargs) -> None:
        self.upstreams: list[FakeUpstream] = []
        self._kwargs = upstream_kwargs

    async def __call__(self) -> FakeUpstream:
        upstream = FakeUpstream(**self._kwargs)
        self.upstreams.append(upstream)
        return upstream

    @property
    def upstream(self) -> FakeUpstream:
        assert len(self.upstreams) == 1
        return self.upstreams[0]


def start_message(stream_sid: str = "CA123", call_sid: str = "CAcall") -> str:
    return json.dumps({"event": "start", "start": {"streamSid": stream_sid, "callSid": call_sid}})


def media_message(mulaw: bytes, *, track: str | None = None) -> str:
    media: dict = {"payload": base64.b64encode(mulaw).decode("ascii")}
    if track:
        media["track"] = track
    return json.dumps({"event": "media", "streamSid": "CA123", "media": media})


def stop_message() -> str:
    return json.dumps({"event": "stop", "stop": {}})


@pytest.fixture()
def make_settings():
    from config.settings import Settings

    def _make(**overrides):
        overrides.setdefault("openai_api_key", "sk-test")
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture(scope="session")
def app():
    os.environ["OPENAI_API_KEY"] = "sk-test"
    os.environ["RELAY_TARGET_SAMPLE_RATE"] = "16000"
    os.environ.pop("PUBLIC_BASE_URL", None)

    import importlib

    # Ensure a clean import with the test environment.
    for module_name in [
        "config.settings",
        "relay.session",
        "relay.registry",
        "api.dependencies",
        "api.relay_routes",
        "api.routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app
