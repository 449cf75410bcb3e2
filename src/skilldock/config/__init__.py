"""
Configuration package for SkillDock.

- app.py: SkillDockConfig, LoggingSettings, YAML load/save and SettingsStore
"""

from skilldock.config.app import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_LIBRARY_PATH,
    LoggingSettings,
    SettingsStore,
    SkillDockConfig,
    expand_env_vars,
    expand_home,
    load_config,
    save_config,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_LIBRARY_PATH",
    "LoggingSettings",
    "SettingsStore",
    "SkillDockConfig",
    "expand_env_vars",
    "expand_home",
    "load_config",
    "save_config",
]
