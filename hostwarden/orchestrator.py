# hostwarden/orchestrator.py
from dataclasses import dataclass
from typing import Optional

from . import logger
from .analytics.threshold_evaluator import ThresholdEvaluator
from .cleaners.budget import MB, ByteBudget
from .cleaners.reclaimer import ReclamationEngine, ReclamationReport
from .cleaners.targets import build_targets
from .cleaners.working_set import TrimResult, WorkingSetTrimmer
from .monitors.system_monitor import MetricsSample, SystemMonitor
from .updater.self_updater import SelfUpdater, UpdateOutcome
from .updater.state_store import UpdateStateStore


@dataclass
class RunReport:
    sample: MetricsSample
    breaches: list
    reclamation: Optional[ReclamationReport]
    trim: Optional[TrimResult]
    update: UpdateOutcome

    @property
    def optimized(self):
        return bool(self.breaches)


class MaintenanceAgent:
    def __init__(self, cfg, monitor=None, evaluator=None, engine=None, trimmer=None, updater=None):
        self.cfg = cfg
        self.monitor = monitor or SystemMonitor()
        self.evaluator = evaluator or ThresholdEvaluator(cfg.thresholds)
        self.engine = engine or ReclamationEngine()
        self._trimmer = trimmer
        self.updater = updater or SelfUpdater(
            cfg.self_update,
            UpdateStateStore(cfg.paths.state_file),
            cfg.paths.artifact,
        )

    @property
    def trimmer(self):
        # created on first use; the platform backend is only needed on a breach
        if self._trimmer is None:
            self._trimmer = WorkingSetTrimmer()
        return self._trimmer

    # ============================================================
    #                         ONE RUN
    # ============================================================
    def run_once(self):
        # 1) Sample + evaluate
        sample = self.monitor.sample(self.cfg.paths.system_drive)
        breaches = self.evaluator.breaches(sample)
        logger.log_fields(
            "metrics",
            cpu=sample.cpu_percent,
            mem=sample.memory_percent,
            freeGB=sample.free_disk_gb,
            breach=",".join(breaches) or "none",
        )

        # 2) Reclaim + trim only on a breach
        reclamation = None
        trim = None
        if breaches:
            reclamation = self._reclaim()
            trim = self._trim()
            logger.log_fields(
                "optimize",
                freedMB=(reclamation.freed_bytes / MB) if reclamation else 0.0,
                deleted=reclamation.deleted_count if reclamation else 0,
                skipped=reclamation.skipped_count if reclamation else 0,
                trimmed=trim.trimmed if trim else "off",
            )

        # 3) Self-update runs every time; it decides on its own whether a check is due
        update = self.updater.run()
        logger.log_fields("self-update", status=str(update), version=update.version)

        return RunReport(sample=sample, breaches=breaches, reclamation=reclamation, trim=trim, update=update)

    def _reclaim(self):
        actions = self.cfg.actions
        targets = build_targets(actions, self.cfg.paths)
        if not targets:
            return None
        budget = ByteBudget.from_megabytes(actions.max_delete_mb_per_run)
        return self.engine.reclaim_targets(targets, budget)

    def _trim(self):
        actions = self.cfg.actions
        if not actions.trim_working_set:
            return None
        return self.trimmer.trim(actions.trim_process_allowlist)
