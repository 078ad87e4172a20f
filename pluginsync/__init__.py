"""pluginsync — extract extension-handler registrations and sync them to a registry."""

__version__ = "0.1.0"
