# hostwarden/cleaners/reclaimer.py
import os
import stat
import time
from dataclasses import dataclass, field
from typing import List, Tuple

from .. import logger
from .budget import MB

SECONDS_PER_DAY = 60 * 60 * 24


@dataclass
class ReclaimResult:
    path: str
    freed_bytes: int = 0
    deleted: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)   # (file, reason)
    stopped_by_budget: bool = False
    missing: bool = False


@dataclass
class ReclamationReport:
    results: list
    budget: object   # ByteBudget after the last target

    @property
    def freed_bytes(self):
        return sum(r.freed_bytes for r in self.results)

    @property
    def deleted_count(self):
        return sum(len(r.deleted) for r in self.results)

    @property
    def skipped_count(self):
        return sum(len(r.skipped) for r in self.results)


class ReclamationEngine:
    def __init__(self, clock=time.time, remover=os.remove):
        self._clock = clock
        self._remove = remover

    def _aged_files(self, root, cutoff, skipped):
        """Regular files under root modified strictly before cutoff, largest first."""
        found = []

        def on_error(err):
            skipped.append((getattr(err, "filename", root), f"walk: {err.strerror or err}"))

        for dirpath, _dirnames, filenames in os.walk(root, onerror=on_error):
            for name in filenames:
                fp = os.path.join(dirpath, name)
                try:
                    st = os.lstat(fp)
                except OSError as e:
                    skipped.append((fp, f"stat: {e.strerror or e}"))
                    continue
                if not stat.S_ISREG(st.st_mode):
                    continue
                if st.st_mtime < cutoff:
                    found.append((st.st_size, fp))

        found.sort(key=lambda item: (-item[0], item[1]))
        return found

    def reclaim(self, path, older_than_days, remaining_budget):
        """
        Delete files under path older than older_than_days, largest first,
        until remaining_budget bytes have been freed.

        The budget is checked before each deletion, so the last file deleted
        may push freed_bytes past remaining_budget by up to its own size.
        Deletion failures are skipped and never counted.
        """
        result = ReclaimResult(path=path)
        if not os.path.exists(path):
            result.missing = True
            return result

        cutoff = self._clock() - older_than_days * SECONDS_PER_DAY
        for size, fp in self._aged_files(path, cutoff, result.skipped):
            if result.freed_bytes >= remaining_budget:
                result.stopped_by_budget = True
                break
            try:
                self._remove(fp)
            except OSError as e:
                result.skipped.append((fp, e.strerror or str(e)))
                continue
            result.freed_bytes += size
            result.deleted.append(fp)

        return result

    def reclaim_targets(self, targets, budget):
        """
        Run every target in order against one shared budget. Targets reached
        after the budget is spent are still invoked with a zero budget.
        """
        results = []
        for target in targets:
            result = self.reclaim(target.path, target.age_threshold_days, budget.remaining)
            budget = budget.consume(result.freed_bytes)
            results.append(result)
            if result.missing:
                logger.log_fields("reclaim", target=target.label, path=target.path, status="missing")
            else:
                logger.log_fields(
                    "reclaim",
                    target=target.label,
                    freedMB=result.freed_bytes / MB,
                    deleted=len(result.deleted),
                    skipped=len(result.skipped),
                    remainingMB=budget.remaining / MB,
                )
        return ReclamationReport(results=results, budget=budget)
