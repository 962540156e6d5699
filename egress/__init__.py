"""Egress supervisor package."""

from .config import Settings, SettingsError
from .controller import ProcessController, ProcessHandle, ProcessState
from .renderer import Destination, render
from .supervisor import ApplyResult, Supervisor

__all__ = [
    'ApplyResult',
    'Destination',
    'ProcessController',
    'ProcessHandle',
    'ProcessState',
    'Settings',
    'SettingsError',
    'Supervisor',
    'render',
]
