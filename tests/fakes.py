"""Shared test doubles for the lottery collaborators."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rentlotto.lottery import Lottery
from rentlotto.models import Base
from rentlotto.settings import Settings

# Digit-only addresses are already in checksum form.
ADMIN = "0x" + "10" * 20
COORDINATOR = "0x" + "20" * 20
ALICE = "0x" + "01" * 20
BOB = "0x" + "02" * 20
CAROL = "0x" + "03" * 20
DAVE = "0x" + "04" * 20
ERIN = "0x" + "05" * 20

WEEK = timedelta(days=7)
START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start=START):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


class FakeCoordinator:
    """Issues sequential handles and remembers what was requested."""

    def __init__(self):
        self.requests = []

    def request_random_words(self, num_words):
        self.requests.append(num_words)
        return f"req-{len(self.requests)}"


class RecordingTransfer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, recipient, amount):
        if self.fail:
            raise ConnectionError("settlement backend unavailable")
        self.sent.append((recipient, amount))


def make_session_factory():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    return engine, sessionmaker(bind=engine, future=True, expire_on_commit=False)


def make_lottery(session_factory, *, whitelist_root=None, clock=None, transfer=None):
    settings = Settings(
        admin_address=ADMIN,
        coordinator_address=COORDINATOR,
        whitelist_root=whitelist_root,
        deposit_window=WEEK,
        break_window=WEEK,
        randomness_timeout=timedelta(days=1),
    )
    clock = clock or FakeClock()
    coordinator = FakeCoordinator()
    transfer = transfer or RecordingTransfer()
    lottery = Lottery(
        session_factory,
        settings,
        coordinator=coordinator,
        transfer=transfer,
        clock=clock,
    )
    return lottery, clock, coordinator, transfer
