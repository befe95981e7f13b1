"""Build pipeline module.

This module handles:
- Job records and the in-process job registry
- Archive staging
- Running platform profiles through the toolchain runner
- Orchestrating and scheduling builds
- Locating finished artifacts
"""

from webgame_builder.builds.models import Job
from webgame_builder.builds.registry import JobRegistry

__all__ = ["Job", "JobRegistry"]

# Lazy imports for submodules to avoid circular imports
# Access via webgame_builder.builds.service, etc.
