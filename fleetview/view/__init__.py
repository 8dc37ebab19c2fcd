"""View layer: retained row tree and its reconciliation.

The rich front-end lives in ``fleetview.view.layout`` and
``fleetview.view.renderer``.
"""

from .dom import MutationLog, RowNode, TableBody
from .reconciler import ReconcileResult, Reconciler, RenderCache

__all__ = [
    "MutationLog",
    "ReconcileResult",
    "Reconciler",
    "RenderCache",
    "RowNode",
    "TableBody",
]
