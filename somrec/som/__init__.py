"""
Self-Organizing Map

Public API:
    Network            - Trainable grid of reference vectors
    CancellationToken  - One-way cooperative cancellation flag
"""

from .network import CancellationToken, Network

__all__ = [
    'Network',
    'CancellationToken',
]
