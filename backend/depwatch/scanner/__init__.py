"""
depwatch Scanner Package.

Dependency graph discovery.
Requires Python 3.11+.
"""

from depwatch.scanner.graph import ROOT, DependencyGraph
from depwatch.scanner.scanner import DependencyScanner

__all__ = ["ROOT", "DependencyGraph", "DependencyScanner"]
