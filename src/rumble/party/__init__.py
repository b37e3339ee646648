from .replay import ReplayAction, ReplayHarness
from .runtime import PartyRuntime, RuntimePaths

__all__ = ["PartyRuntime", "ReplayAction", "ReplayHarness", "RuntimePaths"]
