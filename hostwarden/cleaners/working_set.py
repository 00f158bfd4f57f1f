# hostwarden/cleaners/working_set.py
import os
from dataclasses import dataclass, field
from typing import List

import psutil

from .. import logger

PROCESS_QUERY_INFORMATION = 0x0400
PROCESS_SET_QUOTA = 0x0100


class TrimBackend:
    """Platform capability: ask the OS to trim one process's working set."""

    name = "base"

    def trim(self, pid):
        raise NotImplementedError


class NullTrimBackend(TrimBackend):
    name = "none"

    def trim(self, pid):
        return False


class WindowsTrimBackend(TrimBackend):
    name = "EmptyWorkingSet"

    def __init__(self):
        import ctypes
        from ctypes import wintypes

        self._kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
        self._psapi = ctypes.WinDLL("psapi", use_last_error=True)
        self._kernel32.OpenProcess.argtypes = [wintypes.DWORD, wintypes.BOOL, wintypes.DWORD]
        self._kernel32.OpenProcess.restype = wintypes.HANDLE
        self._kernel32.CloseHandle.argtypes = [wintypes.HANDLE]
        self._psapi.EmptyWorkingSet.argtypes = [wintypes.HANDLE]
        self._psapi.EmptyWorkingSet.restype = wintypes.BOOL

    def trim(self, pid):
        handle = self._kernel32.OpenProcess(PROCESS_QUERY_INFORMATION | PROCESS_SET_QUOTA, False, pid)
        if not handle:
            return False
        try:
            return bool(self._psapi.EmptyWorkingSet(handle))
        finally:
            self._kernel32.CloseHandle(handle)


def default_backend():
    if os.name == "nt":
        return WindowsTrimBackend()
    return NullTrimBackend()


def _normalize(name):
    name = (name or "").strip().lower()
    if name.endswith(".exe"):
        name = name[:-4]
    return name


@dataclass
class TrimResult:
    matched: int = 0
    trimmed: int = 0
    failed: List[str] = field(default_factory=list)   # "name(pid): reason"


class WorkingSetTrimmer:
    def __init__(self, backend=None, process_iter=psutil.process_iter):
        self.backend = backend or default_backend()
        self._process_iter = process_iter

    def trim(self, allowlist):
        """
        Best-effort trim of every running process whose name is on the
        allow-list. Returns how many trim calls the OS accepted; the effect on
        memory is not observable here.
        """
        wanted = {_normalize(n) for n in allowlist if _normalize(n)}
        result = TrimResult()
        if not wanted:
            return result

        for p in self._process_iter(["pid", "name"]):
            try:
                info = p.info
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            name = info.get("name")
            if _normalize(name) not in wanted:
                continue
            pid = info.get("pid")
            result.matched += 1
            try:
                ok = self.backend.trim(pid)
            except (OSError, psutil.Error) as e:
                result.failed.append(f"{name}({pid}): {e}")
                continue
            if ok:
                result.trimmed += 1
            else:
                result.failed.append(f"{name}({pid}): rejected by {self.backend.name}")

        if result.failed:
            logger.log_fields("trim", matched=result.matched, trimmed=result.trimmed, failed=len(result.failed))
        return result
