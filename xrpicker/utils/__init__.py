"""Utility modules for xrpicker."""

from xrpicker.utils.logger import setup_logger

__all__ = ["setup_logger"]
