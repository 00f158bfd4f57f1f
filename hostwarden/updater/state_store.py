# hostwarden/updater/state_store.py
import datetime
import json
import os
import tempfile
from dataclasses import dataclass

from .. import config, logger

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


@dataclass
class UpdateState:
    last_update_check: datetime.datetime
    version: str


def _parse_timestamp(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
    ts = datetime.datetime.fromisoformat(str(value))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


class UpdateStateStore:
    """
    The only record that outlives a run:
        {"lastUpdateCheck": "2026-10-17T08:00:00+00:00", "version": "1.0.0"}
    """

    def __init__(self, path=None, baseline_version=config.VERSION):
        self.path = path or config.STATE_FILE
        self.baseline_version = baseline_version

    def default(self):
        return UpdateState(last_update_check=EPOCH, version=self.baseline_version)

    def load(self):
        """Returns the stored state, or the default when missing or corrupted."""
        if not os.path.exists(self.path):
            return self.default()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            version = data.get("version") or self.baseline_version
            return UpdateState(
                last_update_check=_parse_timestamp(data.get("lastUpdateCheck", 0)),
                version=str(version),
            )
        except (OSError, ValueError, TypeError, AttributeError, OverflowError) as e:
            logger.log(f"[state_store] Failed to read {self.path}, using defaults: {e}")
            return self.default()

    def save(self, state):
        """Write via a sibling temp file and os.replace so readers never see a partial record."""
        d = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(d, exist_ok=True)
        payload = {
            "lastUpdateCheck": state.last_update_check.isoformat(),
            "version": state.version,
        }
        fd, tmp = tempfile.mkstemp(prefix=".state.", suffix=".tmp", dir=d)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
