# hostwarden/analytics/threshold_evaluator.py


class ThresholdEvaluator:
    """
    Decides whether a run should reclaim space and trim memory.

    Any single breach is enough:
      - cpu_percent    >= thresholds.cpu_percent
      - memory_percent >= thresholds.memory_percent
      - free_disk_gb   <= thresholds.system_drive_free_gb

    A metric that could not be sampled (None) never counts as a breach.
    """

    def __init__(self, thresholds):
        self.thresholds = thresholds

    def breaches(self, sample):
        t = self.thresholds
        found = []
        if sample.cpu_percent is not None and sample.cpu_percent >= t.cpu_percent:
            found.append("cpu")
        if sample.memory_percent is not None and sample.memory_percent >= t.memory_percent:
            found.append("memory")
        if sample.free_disk_gb is not None and sample.free_disk_gb <= t.system_drive_free_gb:
            found.append("disk")
        return found

    def should_optimize(self, sample):
        return bool(self.breaches(sample))
