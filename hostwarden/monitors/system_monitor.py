# hostwarden/monitors/system_monitor.py
import time
from dataclasses import dataclass
from typing import Optional

import psutil

from .. import config, logger

GB = 1024 ** 3


@dataclass
class MetricsSample:
    cpu_percent: Optional[float]
    memory_percent: Optional[float]
    free_disk_gb: Optional[float]
    timestamp: float = 0.0


class SystemMonitor:
    """
    Samples CPU %, memory % and free space on the system drive.
    A metric that cannot be read is reported as None rather than failing the run.
    """

    def __init__(self, cpu_interval=config.CPU_SAMPLE_SECONDS):
        self.cpu_interval = cpu_interval

    def _cpu(self):
        try:
            return psutil.cpu_percent(interval=self.cpu_interval)
        except (OSError, psutil.Error) as e:
            logger.log(f"[SystemMonitor] cpu sample failed: {e}")
            return None

    def _memory(self):
        try:
            return psutil.virtual_memory().percent
        except (OSError, psutil.Error) as e:
            logger.log(f"[SystemMonitor] memory sample failed: {e}")
            return None

    def _free_gb(self, drive):
        try:
            usage = psutil.disk_usage(drive)
            return round(usage.free / GB, 2)
        except (OSError, psutil.Error) as e:
            logger.log(f"[SystemMonitor] disk sample failed for {drive}: {e}")
            return None

    def sample(self, system_drive):
        return MetricsSample(
            cpu_percent=self._cpu(),
            memory_percent=self._memory(),
            free_disk_gb=self._free_gb(system_drive),
            timestamp=time.time(),
        )
