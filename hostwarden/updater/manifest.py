# hostwarden/updater/manifest.py
import hashlib
from dataclasses import dataclass

from .. import config

REQUIRED_FIELDS = ("version", "downloadUrl", "sha256")


class ManifestError(ValueError):
    pass


@dataclass(frozen=True)
class Manifest:
    version: str
    download_url: str
    sha256: str


def parse_manifest(payload):
    """
    payload example:
    {
        "version": "1.4.0",
        "downloadUrl": "https://updates.example.com/hostwarden/main.py",
        "sha256": "9f86d081884c7d65..."
    }
    All three fields must be present and non-empty.
    """
    if not isinstance(payload, dict):
        raise ManifestError("manifest is not an object")

    values = {}
    for key in REQUIRED_FIELDS:
        value = payload.get(key)
        if value is None:
            raise ManifestError(f"manifest field '{key}' is missing")
        # a bare number is tolerated for version ("version": 2); nothing else but strings
        numeric_version = key == "version" and isinstance(value, (int, float)) and not isinstance(value, bool)
        if not isinstance(value, str) and not numeric_version:
            raise ManifestError(f"manifest field '{key}' must be a string, got {type(value).__name__}")
        value = str(value).strip()
        if not value:
            raise ManifestError(f"manifest field '{key}' is empty")
        values[key] = value

    return Manifest(
        version=values["version"],
        download_url=values["downloadUrl"],
        sha256=values["sha256"].lower(),
    )


def sha256_file(filepath, chunk_size=config.DOWNLOAD_CHUNK_SIZE):
    hasher = hashlib.sha256()
    with open(filepath, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
