"""Shared test fixtures and factories."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from courier.config.paths import ENV_VAR, get_courier_home
from courier.errors import DeliveryError
from courier.scheduling.timers import TimerCallback
from courier.scheduling.types import Post
from courier.storage import MemoryKeyValueStore

# =============================================================================
# Collaborator fakes
# =============================================================================


class RecordingSender:
    """PostSender that remembers every post it was asked to create."""

    def __init__(self) -> None:
        self.posts: list[Post] = []
        self.fail = False

    async def create_post(self, post: Post) -> str:
        if self.fail:
            raise DeliveryError("destination rejected the post")
        self.posts.append(post)
        return f"post-{len(self.posts)}"

    @property
    def messages(self) -> list[str]:
        return [p.message for p in self.posts]


class GatedSender(RecordingSender):
    """RecordingSender that parks held messages until their gate opens."""

    def __init__(self) -> None:
        super().__init__()
        self.gates: dict[str, asyncio.Event] = {}
        self.waiting: list[str] = []

    def hold(self, message: str) -> asyncio.Event:
        gate = self.gates[message] = asyncio.Event()
        return gate

    async def parked(self, message: str) -> None:
        while message not in self.waiting:
            await asyncio.sleep(0.001)

    async def create_post(self, post: Post) -> str:
        gate = self.gates.get(post.message)
        if gate is not None:
            self.waiting.append(post.message)
            await gate.wait()
        return await super().create_post(post)


@dataclass
class ArmedTimer:
    label: str
    delay: timedelta
    callback: TimerCallback


class ManualTimers:
    """TimerScheduler that only fires when a test says so."""

    def __init__(self) -> None:
        self.armed: list[ArmedTimer] = []

    def schedule_once(
        self, label: str, delay: timedelta, callback: TimerCallback
    ) -> None:
        self.armed.append(ArmedTimer(label, delay, callback))

    def labelled(self, label: str) -> list[ArmedTimer]:
        return [t for t in self.armed if t.label == label]

    def last(self, label: str) -> ArmedTimer:
        return self.labelled(label)[-1]

    async def fire(self, timer: ArmedTimer):
        return await timer.callback()


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 12, 8, 0, tzinfo=UTC))


@pytest.fixture
def post() -> Post:
    return Post(user_id="alice", channel_id="town-square", message="Hello later")


@pytest.fixture
def courier_home(tmp_path: Path, monkeypatch) -> Path:
    """Point COURIER_HOME at a temporary directory."""
    home = tmp_path / "courier-home"
    monkeypatch.setenv(ENV_VAR, str(home))
    get_courier_home.cache_clear()
    yield home
    get_courier_home.cache_clear()


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})
