"""Declarative management of Octopus Deploy deployment steps, feeds and accounts."""

__version__ = "0.1.0"
