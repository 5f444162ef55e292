"""Web configuration data model, force-sync handling and sync timers over an in-process message bus."""

__version__ = "0.1.0"
__all__ = ["types", "forcesync", "timer", "bus", "datamodel"]