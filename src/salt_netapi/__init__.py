"""
salt_netapi

This package provides a typed client for the salt-api (netapi) service:
remote execution calls against minions with per-minion typed results,
and a listener based view of the master's event bus.
"""
__version__ = "0.1.0"
