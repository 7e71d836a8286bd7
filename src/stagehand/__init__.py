"""
stagehand: dependency-ordered bring-up of Kubernetes resources.

Declared resources are created as soon as everything they depend on is
ready (or ready enough), polled until they settle, and reported on.
"""

__version__ = "0.1.0"
