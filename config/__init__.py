"""Configuration package for the interview turn service."""
from .registry import EVALUATOR_KEY, bind_model, get_model, is_bound, unbind_model
from .routes import AppConfig, LlmRoute, load_config, load_route, resolve_route
from .settings import FlowSettings, Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "load_route",
    "resolve_route",
    "EVALUATOR_KEY",
    "bind_model",
    "get_model",
    "is_bound",
    "unbind_model",
    "FlowSettings",
    "Settings",
    "settings",
]
