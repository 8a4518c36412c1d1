"""
Configuration management.

YAML file loading, environment resolution and the validated PipelineConfig.
"""

from bucketflow.config.loader import Config, load_config
from bucketflow.config.pipeline import ErrorPolicy, PipelineConfig, ReadMode
from bucketflow.config.resolver import resolve_config

__all__ = [
    "Config",
    "load_config",
    "resolve_config",
    "PipelineConfig",
    "ReadMode",
    "ErrorPolicy",
]
