"""
Retail star-schema build and customer analytics pipeline.
"""

__all__ = ["ProjectConfig", "run_all"]

from .pipeline import ProjectConfig, run_all  # convenience re-export
