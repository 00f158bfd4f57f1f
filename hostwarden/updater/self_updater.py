# hostwarden/updater/self_updater.py
import datetime
import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, replace
from typing import Optional

import requests

from .. import config, logger
from ..notifier import Notifier
from .manifest import ManifestError, parse_manifest, sha256_file

SKIP = "skip"
NOT_DUE = "not-due"
UPDATE_ERROR = "update-error"
BAD_MANIFEST = "bad-manifest"
UP_TO_DATE = "up-to-date"
HASH_MISMATCH = "hash-mismatch"
UPDATED = "updated"


@dataclass
class UpdateOutcome:
    status: str
    version: Optional[str] = None
    detail: Optional[str] = None

    def __str__(self):
        if self.status == UPDATED:
            return f"{UPDATED}:{self.version}"
        return self.status


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class SelfUpdater:
    """
    One self-update evaluation per run:

        skip -> not-due -> (mark checked) -> fetch manifest -> compare version
             -> download -> verify sha256 -> install

    lastUpdateCheck is persisted as soon as a check is due, before any
    network traffic, so a failing update source is retried once per interval
    rather than on every run. The stored version only moves after a verified
    install.
    """

    def __init__(self, settings, store, artifact_path, session=None, clock=_utcnow,
                 manifest_timeout=config.MANIFEST_TIMEOUT,
                 download_timeout=config.DOWNLOAD_TIMEOUT,
                 chunk_size=config.DOWNLOAD_CHUNK_SIZE):
        self.settings = settings
        self.store = store
        self.artifact_path = os.path.abspath(artifact_path)
        self.session = session or requests.Session()
        self._clock = clock
        self.manifest_timeout = manifest_timeout
        self.download_timeout = download_timeout
        self.chunk_size = chunk_size

    def run(self):
        if not self.settings.enabled:
            return UpdateOutcome(SKIP)

        state = self.store.load()
        now = self._clock()
        elapsed_hours = (now - state.last_update_check).total_seconds() / 3600
        if elapsed_hours < 0 or elapsed_hours < self.settings.check_every_hours:
            return UpdateOutcome(NOT_DUE, version=state.version)

        state.last_update_check = now
        try:
            self.store.save(state)
        except OSError as e:
            logger.log(f"[SelfUpdater] could not persist check time: {e}")
            return UpdateOutcome(UPDATE_ERROR, version=state.version, detail=str(e))

        try:
            return self._check_and_install(state)
        except Exception as e:
            logger.log(f"[SelfUpdater] update failed: {e!r}")
            return UpdateOutcome(UPDATE_ERROR, version=state.version, detail=repr(e))

    def _fetch_manifest(self):
        with self.session.get(self.settings.manifest_url, timeout=self.manifest_timeout) as response:
            response.raise_for_status()
            body = response.content
        return body

    def _check_and_install(self, state):
        try:
            body = self._fetch_manifest()
        except requests.RequestException as e:
            logger.log(f"[SelfUpdater] manifest fetch failed: {e}")
            return UpdateOutcome(UPDATE_ERROR, version=state.version, detail=str(e))

        try:
            manifest = parse_manifest(json.loads(body))
        except (ValueError, ManifestError) as e:
            logger.log(f"[SelfUpdater] rejected manifest: {e}")
            return UpdateOutcome(BAD_MANIFEST, version=state.version, detail=str(e))

        if manifest.version == state.version:
            return UpdateOutcome(UP_TO_DATE, version=state.version)

        try:
            tmp = self._download(manifest.download_url)
        except requests.RequestException as e:
            logger.log(f"[SelfUpdater] download failed: {e}")
            return UpdateOutcome(UPDATE_ERROR, version=state.version, detail=str(e))

        try:
            digest = sha256_file(tmp)
            if digest.lower() != manifest.sha256.lower():
                os.remove(tmp)
                Notifier.alert_security(
                    "hash-mismatch",
                    version=manifest.version,
                    expected=manifest.sha256,
                    actual=digest,
                    url=manifest.download_url,
                )
                return UpdateOutcome(HASH_MISMATCH, version=state.version, detail=digest)
            self._install(tmp)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

        self.store.save(replace(state, version=manifest.version))
        state.version = manifest.version
        logger.log(f"[SelfUpdater] installed {manifest.version} to {self.artifact_path}")
        return UpdateOutcome(UPDATED, version=manifest.version)

    def _download(self, url):
        """Stream url into a private temp file beside the artifact; returns its path."""
        directory = os.path.dirname(self.artifact_path)
        fd, tmp = tempfile.mkstemp(prefix=f".{os.path.basename(self.artifact_path)}.", suffix=".download", dir=directory)
        deadline = time.monotonic() + self.download_timeout
        try:
            with os.fdopen(fd, "wb") as f, \
                    self.session.get(url, timeout=self.download_timeout, stream=True) as response:
                response.raise_for_status()
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if time.monotonic() > deadline:
                        raise requests.Timeout(f"download exceeded {self.download_timeout}s")
                    if chunk:
                        f.write(chunk)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        return tmp

    def _install(self, payload):
        if os.path.exists(self.artifact_path):
            shutil.copymode(self.artifact_path, payload)
        os.replace(payload, self.artifact_path)
