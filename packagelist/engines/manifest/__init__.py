"""Manifest engine — fetch manifest files and dump them with the external tool."""

from packagelist.engines.manifest.dumper import ManifestDumper, parse_manifest
from packagelist.engines.manifest.fetcher import PRIMARY_MANIFEST, ManifestFetcher
from packagelist.engines.manifest.models import Dependency, PackageManifest, Product
from packagelist.engines.manifest.process import ProcessResult, run_process

__all__ = [
    "PRIMARY_MANIFEST",
    "Dependency",
    "ManifestDumper",
    "ManifestFetcher",
    "PackageManifest",
    "ProcessResult",
    "Product",
    "parse_manifest",
    "run_process",
]
