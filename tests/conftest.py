"""Shared fixtures."""
import pytest
import pytest_asyncio

from quickbits.db.database import Database
from quickbits.services.ledger import UploadLedger


class FakeProcess:
    """Stands in for an asyncio subprocess."""

    def __init__(self, returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr

    async def communicate(self):
        return self._stdout, self._stderr

    def kill(self):
        pass

    async def wait(self):
        return self.returncode


@pytest.fixture
def fake_exec(monkeypatch):
    """
    Replace ``asyncio.create_subprocess_exec``.

    Call the fixture with a function ``cmd -> FakeProcess``; every command
    run is recorded in the returned list.
    """
    import asyncio

    calls = []

    def install(responder):
        async def _fake_exec(*cmd, **kwargs):
            calls.append(list(cmd))
            return responder(list(cmd))

        monkeypatch.setattr(asyncio, "create_subprocess_exec", _fake_exec)
        return calls

    return install


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.open()
    yield db
    await db.close()


@pytest.fixture
def ledger(database):
    return UploadLedger(database, platforms=["youtube", "twitter"])
