import psutil

from hostwarden.cleaners.working_set import NullTrimBackend, WorkingSetTrimmer


class FakeProc:
    def __init__(self, pid, name, gone=False):
        self._info = {"pid": pid, "name": name}
        self._gone = gone

    @property
    def info(self):
        if self._gone:
            raise psutil.NoSuchProcess(self._info["pid"])
        return self._info


class RecordingBackend:
    name = "recording"

    def __init__(self, fail_pids=(), raise_pids=()):
        self.calls = []
        self.fail_pids = set(fail_pids)
        self.raise_pids = set(raise_pids)

    def trim(self, pid):
        self.calls.append(pid)
        if pid in self.raise_pids:
            raise OSError("access denied")
        return pid not in self.fail_pids


def _iter(procs):
    def process_iter(attrs=None):
        return iter(procs)
    return process_iter


def test_trims_only_allowlisted_processes():
    procs = [
        FakeProc(1, "chrome.exe"),
        FakeProc(2, "Chrome.EXE"),
        FakeProc(3, "explorer.exe"),
        FakeProc(4, "teams"),
    ]
    backend = RecordingBackend()
    result = WorkingSetTrimmer(backend=backend, process_iter=_iter(procs)).trim(["chrome.exe", "Teams.exe"])

    assert backend.calls == [1, 2, 4]
    assert result.matched == 3
    assert result.trimmed == 3
    assert result.failed == []


def test_failures_are_skipped_and_not_retried():
    procs = [FakeProc(1, "a.exe"), FakeProc(2, "a.exe"), FakeProc(3, "a.exe"), FakeProc(4, "a.exe", gone=True)]
    backend = RecordingBackend(fail_pids={2}, raise_pids={3})
    result = WorkingSetTrimmer(backend=backend, process_iter=_iter(procs)).trim(["a"])

    assert backend.calls == [1, 2, 3]
    assert result.matched == 3
    assert result.trimmed == 1
    assert len(result.failed) == 2


def test_empty_allowlist_does_not_enumerate():
    def process_iter(attrs=None):
        raise AssertionError("should not enumerate processes")

    result = WorkingSetTrimmer(backend=RecordingBackend(), process_iter=process_iter).trim(["", "  "])
    assert result.matched == 0
    assert result.trimmed == 0


def test_null_backend_reports_no_successful_trims():
    result = WorkingSetTrimmer(backend=NullTrimBackend(), process_iter=_iter([FakeProc(7, "svc")])).trim(["svc"])
    assert result.matched == 1
    assert result.trimmed == 0
    assert result.failed == ["svc(7): rejected by none"]
