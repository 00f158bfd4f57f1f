# hostwarden/config.py
import json
import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

# Baseline version recorded in the update state on first run
VERSION = "1.0.0"

# Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_FILE = os.path.join(BASE_DIR, "config.json")
STATE_FILE = os.path.join(BASE_DIR, "state.json")
LOG_FILE = os.path.join(BASE_DIR, "hostwarden.log")
LOCK_FILE = os.path.join(BASE_DIR, "hostwarden.lock")
ARTIFACT_FILE = os.path.join(BASE_DIR, "main.py")

# Log rotation: one .bak generation once the file passes this size
LOG_MAX_BYTES = 1024 * 1024

# Network timeouts (seconds)
MANIFEST_TIMEOUT = 10
DOWNLOAD_TIMEOUT = 20
DOWNLOAD_CHUNK_SIZE = 64 * 1024

# Sampling / scheduling
CPU_SAMPLE_SECONDS = 1.0
IDLE_SECONDS = 5   # pause after a run when not in --once mode

# Threshold defaults
CPU_THRESHOLD = 90          # percent
RAM_THRESHOLD = 90          # percent
DISK_FREE_THRESHOLD_GB = 5

# Cleanup defaults
TEMP_FILE_OLDER_THAN_DAYS = 7
MAX_DELETE_MB_PER_RUN = 1024

if os.name == "nt":
    _windir = os.environ.get("WINDIR", r"C:\Windows")
    SYSTEM_DRIVE = os.environ.get("SystemDrive", "C:") + "\\"
    TEMP_DIRS = [tempfile.gettempdir(), os.path.join(_windir, "Temp")]
    DELIVERY_CACHE_DIR = os.path.join(
        _windir, "ServiceProfiles", "NetworkService", "AppData", "Local",
        "Microsoft", "Windows", "DeliveryOptimization", "Cache",
    )
else:
    SYSTEM_DRIVE = "/"
    TEMP_DIRS = [tempfile.gettempdir(), "/var/tmp"]
    DELIVERY_CACHE_DIR = "/var/cache/apt/archives"


class ConfigError(Exception):
    """Configuration is missing or invalid; the run cannot start."""


@dataclass
class Thresholds:
    cpu_percent: float = CPU_THRESHOLD
    memory_percent: float = RAM_THRESHOLD
    system_drive_free_gb: float = DISK_FREE_THRESHOLD_GB


@dataclass
class Actions:
    cleanup_temp: bool = True
    cleanup_delivery_optimization: bool = False
    temp_file_older_than_days: float = TEMP_FILE_OLDER_THAN_DAYS
    max_delete_mb_per_run: float = MAX_DELETE_MB_PER_RUN
    trim_working_set: bool = False
    trim_process_allowlist: List[str] = field(default_factory=list)


@dataclass
class SelfUpdateSettings:
    enabled: bool = False
    check_every_hours: float = 24
    manifest_url: Optional[str] = None


@dataclass
class Paths:
    temp_dirs: List[str] = field(default_factory=lambda: list(TEMP_DIRS))
    delivery_cache_dir: str = DELIVERY_CACHE_DIR
    system_drive: str = SYSTEM_DRIVE
    state_file: str = STATE_FILE
    log_file: str = LOG_FILE
    log_max_bytes: int = LOG_MAX_BYTES
    lock_file: str = LOCK_FILE
    artifact: str = ARTIFACT_FILE


@dataclass
class AgentConfig:
    thresholds: Thresholds
    actions: Actions
    self_update: SelfUpdateSettings
    paths: Paths


def _section(data, name, required=True):
    value = data.get(name)
    if value is None:
        if required:
            raise ConfigError(f"missing section '{name}'")
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"section '{name}' must be an object")
    return value


def _number(section, name, key, default, minimum=0.0, maximum=None):
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name}.{key} must be a number, got {value!r}")
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"[{minimum}, {maximum}]" if maximum is not None else f">= {minimum}"
        raise ConfigError(f"{name}.{key} out of range {bounds}: {value}")
    return value


def _flag(section, name, key, default):
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{name}.{key} must be true or false, got {value!r}")
    return value


def _string_list(section, name, key, default):
    value = section.get(key, default)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{name}.{key} must be a list of strings")
    return list(value)


def _resolve(base_dir, path):
    path = os.path.expandvars(os.path.expanduser(path))
    if os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(base_dir, path))


def _parse_paths(raw, base_dir):
    defaults = Paths()
    temp_dirs = _string_list(raw, "paths", "tempDirs", defaults.temp_dirs)
    log_max_kb = _number(raw, "paths", "logMaxKB", defaults.log_max_bytes / 1024, minimum=1)

    def path_of(key, default):
        value = raw.get(key, default)
        if not isinstance(value, str) or not value:
            raise ConfigError(f"paths.{key} must be a non-empty string")
        return _resolve(base_dir, value)

    return Paths(
        temp_dirs=[_resolve(base_dir, p) for p in temp_dirs],
        delivery_cache_dir=path_of("deliveryCacheDir", defaults.delivery_cache_dir),
        system_drive=path_of("systemDrive", defaults.system_drive),
        state_file=path_of("stateFile", defaults.state_file),
        log_file=path_of("logFile", defaults.log_file),
        log_max_bytes=int(log_max_kb * 1024),
        lock_file=path_of("lockFile", defaults.lock_file),
        artifact=path_of("artifact", defaults.artifact),
    )


def parse_config(data, base_dir=BASE_DIR):
    """
    Build an AgentConfig from the decoded JSON document.

    Raises ConfigError when a section is missing or a value is out of range.
    """
    if not isinstance(data, dict):
        raise ConfigError("configuration root must be an object")

    raw = _section(data, "thresholds")
    thresholds = Thresholds(
        cpu_percent=_number(raw, "thresholds", "cpuPercent", CPU_THRESHOLD, maximum=100),
        memory_percent=_number(raw, "thresholds", "memoryPercent", RAM_THRESHOLD, maximum=100),
        system_drive_free_gb=_number(raw, "thresholds", "systemDriveFreeGB", DISK_FREE_THRESHOLD_GB),
    )

    raw = _section(data, "actions")
    actions = Actions(
        cleanup_temp=_flag(raw, "actions", "cleanupTemp", True),
        cleanup_delivery_optimization=_flag(raw, "actions", "cleanupDeliveryOptimization", False),
        temp_file_older_than_days=_number(raw, "actions", "tempFileOlderThanDays", TEMP_FILE_OLDER_THAN_DAYS),
        max_delete_mb_per_run=_number(raw, "actions", "maxDeleteMBPerRun", MAX_DELETE_MB_PER_RUN),
        trim_working_set=_flag(raw, "actions", "trimWorkingSet", False),
        trim_process_allowlist=_string_list(raw, "actions", "trimProcessAllowlist", []),
    )

    raw = _section(data, "selfUpdate")
    self_update = SelfUpdateSettings(
        enabled=_flag(raw, "selfUpdate", "enabled", False),
        check_every_hours=_number(raw, "selfUpdate", "checkEveryHours", 24),
        manifest_url=raw.get("manifestUrl") or None,
    )
    if self_update.check_every_hours <= 0:
        raise ConfigError("selfUpdate.checkEveryHours must be greater than 0")
    if self_update.manifest_url is not None and not isinstance(self_update.manifest_url, str):
        raise ConfigError("selfUpdate.manifestUrl must be a string")
    if self_update.enabled and not self_update.manifest_url:
        raise ConfigError("selfUpdate.manifestUrl is required when self-update is enabled")

    paths = _parse_paths(_section(data, "paths", required=False), base_dir)

    return AgentConfig(thresholds=thresholds, actions=actions, self_update=self_update, paths=paths)


def load_config(path=None):
    path = os.path.abspath(path or CONFIG_FILE)
    if not os.path.exists(path):
        raise ConfigError(f"configuration file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read configuration {path}: {e}") from e
    return parse_config(data, base_dir=os.path.dirname(path))
