"""
Remote Module - Black Box Interface

Purpose: Let the host talk to modules running in another process
Interface: RemoteModule (a Module + FunctionProvider over HTTP)
Hidden: Wire format, state snapshots, error reconstruction
"""

from .client import RemoteModule

__all__ = ["RemoteModule"]
