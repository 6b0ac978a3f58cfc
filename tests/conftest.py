"""
Pytest configuration and fixtures for LifeSignal tests
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest
import pytest_asyncio

from lifesignal.alerts import AlertTrigger
from lifesignal.config import LifeSignalConfig
from lifesignal.contacts import ContactSyncEngine, LocalContactStore, PingHandler
from lifesignal.documents import DocumentStore, RelationshipFunctions
from lifesignal.user import Session, UserService

START = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """Notification client that records calls and can be told to fail."""

    def __init__(self):
        self.calls: List[Tuple[str, str]] = []
        self.fail = False

    async def send_manual_alert(self, user_id: str) -> None:
        if self.fail:
            raise RuntimeError("push service unavailable")
        self.calls.append(("alert", user_id))

    async def cancel_manual_alert(self, user_id: str) -> None:
        if self.fail:
            raise RuntimeError("push service unavailable")
        self.calls.append(("cancel", user_id))


@dataclass
class Client:
    """Everything one signed-in device holds."""

    session: Session
    store: LocalContactStore
    sync: ContactSyncEngine
    pings: PingHandler
    alerts: AlertTrigger
    users: UserService
    notifier: RecordingNotifier

    @property
    def user_id(self) -> str:
        return self.session.require_user_id()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config(tmp_path):
    return LifeSignalConfig(db_path=tmp_path / "lifesignal.db", log_dir=tmp_path / "logs")


@pytest_asyncio.fixture
async def documents(config):
    store = DocumentStore(config.db_path)
    await store.initialize()
    yield store
    await store.wait_for_deliveries()


@pytest.fixture
def functions(documents):
    return RelationshipFunctions(documents)


@pytest.fixture
def make_client(documents, functions, config, clock):
    """Build a client for a user id, sharing the same document store."""

    def _make(user_id=None, functions_override=None) -> Client:
        fns = functions_override or functions
        session = Session(user_id)
        store = LocalContactStore(clock=clock)
        sync = ContactSyncEngine(session, documents, fns, store, clock=clock)
        notifier = RecordingNotifier()
        return Client(
            session=session,
            store=store,
            sync=sync,
            pings=PingHandler(sync, store, clock=clock),
            alerts=AlertTrigger(session, documents, notifier, fns, clock=clock),
            users=UserService(session, documents, fns, config, clock=clock),
            notifier=notifier,
        )

    return _make


@pytest_asyncio.fixture
async def alice(make_client):
    client = make_client()
    await client.users.create_user("Alice Smith", "650-253-0000", "Diabetic", user_id="alice")
    return client


@pytest_asyncio.fixture
async def bob(make_client):
    client = make_client()
    await client.users.create_user("Bob Jones", "212-736-5000", user_id="bob")
    return client


@pytest_asyncio.fixture
async def carol(make_client):
    client = make_client()
    await client.users.create_user("Carol White", "617-253-1000", user_id="carol")
    return client
