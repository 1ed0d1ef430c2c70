"""Broker module."""

from .broker import BROKER_ID, Broker, IBroker, MasterControlProgram

__all__ = ["BROKER_ID", "Broker", "IBroker", "MasterControlProgram"]
