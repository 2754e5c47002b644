"""Kubernetes controller for master-slave and sentinel Redis topologies."""

__version__ = "0.1.0"
