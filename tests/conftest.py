import os

import pytest
import requests

from hostwarden import logger
from hostwarden.notifier import Notifier


@pytest.fixture(autouse=True)
def isolated_log(tmp_path_factory, monkeypatch):
    """Send log output to a per-test file and keep alerts silent."""
    log_file = tmp_path_factory.mktemp("logs") / "hostwarden.log"
    logger.configure(str(log_file), 1024 * 1024)
    monkeypatch.setattr(Notifier, "alert_sound", staticmethod(lambda: None))
    yield log_file
    logger.configure()


def make_file(path, size, mtime=None):
    """Create a (sparse) file of the given size, optionally back-dating its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.truncate(size)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self._content = content
        self.status_code = status_code
        self.closed = False

    @property
    def content(self):
        return self._content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._content), chunk_size):
            yield self._content[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


class FakeSession:
    """Maps URL -> FakeResponse or an exception to raise; records every GET."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, timeout=None, stream=False):
        self.calls.append((url, timeout, stream))
        target = self.routes.get(url)
        if target is None:
            raise requests.ConnectionError(f"no route for {url}")
        if isinstance(target, Exception):
            raise target
        return target

    def urls(self):
        return [c[0] for c in self.calls]
