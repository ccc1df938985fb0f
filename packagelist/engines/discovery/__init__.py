"""Dependency discovery engine — admit unknown dependencies of listed packages."""

from packagelist.engines.discovery.models import DiscoveryResult, Failure
from packagelist.engines.discovery.runner import DependencyDiscovery

__all__ = ["DependencyDiscovery", "DiscoveryResult", "Failure"]
