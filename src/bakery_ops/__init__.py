"""Bakery Operations - order lifecycle and ingredient stock reconciliation."""

from bakery_ops.utils.constants import APP_VERSION

__version__ = APP_VERSION
