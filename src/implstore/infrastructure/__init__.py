"""
implstore.infrastructure - Persistence Layer
==============================================

Durable storage for per-network deployment manifests.

Components:
    - ManifestStore (ABC):    read() and locked_update() contract
    - FileManifestStore:      JSON file per network, flock + atomic replace
    - InMemoryManifestStore:  serialized manifests in a dict, for development/testing

Usage:
    from implstore.infrastructure import FileManifestStore
"""

from implstore.infrastructure.manifest_store import (
    FileManifestStore,
    InMemoryManifestStore,
    ManifestStore,
    parse_manifest,
    serialize_manifest,
    validate_network,
)

__all__ = [
    "FileManifestStore",
    "InMemoryManifestStore",
    "ManifestStore",
    "parse_manifest",
    "serialize_manifest",
    "validate_network",
]
