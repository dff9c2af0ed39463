"""
Pipeline module.

Wires the fetchers and the dispatcher into the concurrent
fetch-cache-dispatch pipeline.
"""

from .coordinator import PipelineCoordinator, PipelineStats
from .context import AppContext

__all__ = ['PipelineCoordinator', 'PipelineStats', 'AppContext']
