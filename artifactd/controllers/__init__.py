"""Controllers that turn declared resources into artifact manager calls."""

from .base import MediumOutcome, ResourceOutcome
from .config import ConfigController
from .plugin import PLUGINS_CONFIG_NAME, PluginController, PluginsConfig
from .reconciler import PassReport, Reconciler
from .rulesfile import RulesfileController

__all__ = [
    "ConfigController",
    "MediumOutcome",
    "PLUGINS_CONFIG_NAME",
    "PassReport",
    "PluginController",
    "PluginsConfig",
    "Reconciler",
    "ResourceOutcome",
    "RulesfileController",
]
