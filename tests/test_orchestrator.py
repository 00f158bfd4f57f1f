import time

import pytest

from conftest import make_file
from hostwarden.cleaners.budget import MB
from hostwarden.cleaners.working_set import TrimResult
from hostwarden.config import Actions, AgentConfig, Paths, SelfUpdateSettings, Thresholds
from hostwarden.monitors.system_monitor import MetricsSample
from hostwarden.orchestrator import MaintenanceAgent
from hostwarden.updater.self_updater import UpdateOutcome

OLD = time.time() - 30 * 86400


class FixedMonitor:
    def __init__(self, sample):
        self._sample = sample
        self.drives = []

    def sample(self, system_drive):
        self.drives.append(system_drive)
        return self._sample


class CountingUpdater:
    def __init__(self, outcome):
        self.outcome = outcome
        self.runs = 0

    def run(self):
        self.runs += 1
        return self.outcome


class RecordingTrimmer:
    def __init__(self):
        self.calls = []

    def trim(self, allowlist):
        self.calls.append(list(allowlist))
        return TrimResult(matched=2, trimmed=2)


@pytest.fixture
def cfg(tmp_path):
    return AgentConfig(
        thresholds=Thresholds(cpu_percent=90, memory_percent=90, system_drive_free_gb=5),
        actions=Actions(
            cleanup_temp=True,
            cleanup_delivery_optimization=True,
            temp_file_older_than_days=7,
            max_delete_mb_per_run=15,
            trim_working_set=True,
            trim_process_allowlist=["chrome.exe"],
        ),
        self_update=SelfUpdateSettings(enabled=False),
        paths=Paths(
            temp_dirs=[str(tmp_path / "temp1"), str(tmp_path / "temp2")],
            delivery_cache_dir=str(tmp_path / "delivery"),
            system_drive=str(tmp_path),
            state_file=str(tmp_path / "state.json"),
        ),
    )


def test_quiet_host_only_runs_self_update(cfg, tmp_path, isolated_log):
    keep = make_file(tmp_path / "temp1" / "old.bin", MB, mtime=OLD)
    updater = CountingUpdater(UpdateOutcome("not-due", version="1.0.0"))
    trimmer = RecordingTrimmer()
    agent = MaintenanceAgent(
        cfg,
        monitor=FixedMonitor(MetricsSample(cpu_percent=10, memory_percent=20, free_disk_gb=100)),
        trimmer=trimmer,
        updater=updater,
    )

    report = agent.run_once()

    assert report.optimized is False
    assert report.reclamation is None
    assert trimmer.calls == []
    assert updater.runs == 1
    assert keep.exists()
    log_text = isolated_log.read_text(encoding="utf-8")
    assert "| metrics | cpu=10 | mem=20 | freeGB=100 | breach=none" in log_text
    assert "| optimize |" not in log_text
    assert "| self-update | status=not-due | version=1.0.0" in log_text


def test_breach_reclaims_in_priority_order_and_trims(cfg, tmp_path, isolated_log):
    for i, mb in enumerate([10, 8, 6, 4, 2]):
        make_file(tmp_path / "temp1" / f"f{i}.bin", mb * MB, mtime=OLD)
    cache_file = make_file(tmp_path / "delivery" / "payload.cab", 3 * MB, mtime=OLD)
    monitor = FixedMonitor(MetricsSample(cpu_percent=95, memory_percent=40, free_disk_gb=50))
    updater = CountingUpdater(UpdateOutcome("updated", version="2.0.0"))
    trimmer = RecordingTrimmer()

    report = MaintenanceAgent(cfg, monitor=monitor, trimmer=trimmer, updater=updater).run_once()

    assert report.breaches == ["cpu"]
    assert monitor.drives == [str(tmp_path)]
    # temp2 is missing; the delivery cache runs last with nothing left
    assert [r.freed_bytes for r in report.reclamation.results] == [18 * MB, 0, 0]
    assert report.reclamation.results[1].missing
    assert cache_file.exists()
    assert trimmer.calls == [["chrome.exe"]]
    assert report.trim.trimmed == 2
    assert updater.runs == 1

    log_text = isolated_log.read_text(encoding="utf-8")
    assert "| optimize | freedMB=18.00 | deleted=2 | skipped=0 | trimmed=2" in log_text
    assert "| self-update | status=updated:2.0.0 | version=2.0.0" in log_text


def test_breach_with_actions_disabled(cfg, tmp_path, isolated_log):
    cfg.actions.cleanup_temp = False
    cfg.actions.cleanup_delivery_optimization = False
    cfg.actions.trim_working_set = False
    trimmer = RecordingTrimmer()
    agent = MaintenanceAgent(
        cfg,
        monitor=FixedMonitor(MetricsSample(cpu_percent=1, memory_percent=1, free_disk_gb=1)),
        trimmer=trimmer,
        updater=CountingUpdater(UpdateOutcome("skip")),
    )

    report = agent.run_once()

    assert report.breaches == ["disk"]
    assert report.reclamation is None
    assert report.trim is None
    assert trimmer.calls == []
    assert "| optimize | freedMB=0.00 | deleted=0 | skipped=0 | trimmed=off" in isolated_log.read_text(encoding="utf-8")
