from .manifest import (
    FRESH,
    MISSING,
    STALE,
    CacheManifest,
    CacheManifestEntry,
    Change,
    Dependency,
    VehicleStatus,
    canonical_json_bytes,
    sha256_file,
    sha256_hex,
)

__all__ = [
    "FRESH",
    "MISSING",
    "STALE",
    "CacheManifest",
    "CacheManifestEntry",
    "Change",
    "Dependency",
    "VehicleStatus",
    "canonical_json_bytes",
    "sha256_file",
    "sha256_hex",
]
