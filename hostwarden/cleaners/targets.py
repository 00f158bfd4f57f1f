# hostwarden/cleaners/targets.py
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class CleanupTarget:
    label: str
    path: str
    age_threshold_days: float


def build_targets(actions, paths):
    """
    Targets in priority order: generic temp directories first, then the
    delivery/update cache. Reclamation consumes the shared budget in this
    order.
    """
    days = actions.temp_file_older_than_days
    candidates = []
    if actions.cleanup_temp:
        for i, d in enumerate(paths.temp_dirs, start=1):
            candidates.append(CleanupTarget(f"temp{i}", d, days))
    if actions.cleanup_delivery_optimization:
        candidates.append(CleanupTarget("delivery-cache", paths.delivery_cache_dir, days))

    targets = []
    seen = set()
    for t in candidates:
        key = os.path.normcase(os.path.abspath(t.path))
        if key in seen:
            continue
        seen.add(key)
        targets.append(t)
    return targets
