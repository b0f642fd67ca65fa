"""
Reconcilers package.

A reconciler owns the create/read/update/delete lifecycle of one resource
kind against the Cloud Controller.
"""

from reconcilers.base import (
    ReconcileAction,
    ReconcileResult,
    ResourceReconciler,
    ResourceState,
)
from reconcilers.buildpack import BuildpackReconciler, BuildpackSpec

__all__ = [
    "BuildpackReconciler",
    "BuildpackSpec",
    "ReconcileAction",
    "ReconcileResult",
    "ResourceReconciler",
    "ResourceState",
]
