"""
depwatch Imports Package.

Import extraction and resolution for the dependency scanner.
Requires Python 3.11+.
"""

from depwatch.imports.models import Extractor, FileKind, Resolver
from depwatch.imports.extractor import TreeSitterExtractor
from depwatch.imports.project_config import ProjectConfig, find_project_config
from depwatch.imports.resolver import ImportResolver

__all__ = [
    "Extractor",
    "FileKind",
    "Resolver",
    "TreeSitterExtractor",
    "ProjectConfig",
    "find_project_config",
    "ImportResolver",
]
