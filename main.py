# main.py
import argparse
import sys
import time

from hostwarden import config, logger
from hostwarden.instance_lock import InstanceLockError, SingleInstanceLock
from hostwarden.orchestrator import MaintenanceAgent


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="hostwarden",
        description="Sample host resources, reclaim disk/memory on threshold breach, and self-update.",
    )
    parser.add_argument("--config", default=config.CONFIG_FILE, help="path to config.json")
    parser.add_argument("--once", action="store_true",
                        help="run once and exit (default: run, then idle briefly before exiting)")
    return parser.parse_args(argv)


# ============================================================
#                       MAIN APPLICATION
# ============================================================
def main(argv=None, sleep=time.sleep):
    args = parse_args(argv)

    try:
        cfg = config.load_config(args.config)
    except config.ConfigError as e:
        logger.log(f"FATAL | {e}")
        return 2

    logger.configure(cfg.paths.log_file, cfg.paths.log_max_bytes)

    try:
        with SingleInstanceLock(cfg.paths.lock_file):
            MaintenanceAgent(cfg).run_once()
    except InstanceLockError as e:
        logger.log(f"skipped | {e}")
        return 1

    if not args.once:
        sleep(config.IDLE_SECONDS)
    return 0


if __name__ == "__main__":
    sys.exit(main())
