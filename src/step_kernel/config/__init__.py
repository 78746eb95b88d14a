from .loader import ConfigError, load_config, load_yaml_config, validate_config
from .models import AppConfig, LoggingConfig, ReportConfig, SelectionConfig, TraceConfig

__all__ = [
    "AppConfig",
    "ConfigError",
    "LoggingConfig",
    "ReportConfig",
    "SelectionConfig",
    "TraceConfig",
    "load_config",
    "load_yaml_config",
    "validate_config",
]
