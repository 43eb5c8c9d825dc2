"""
Request handlers.
"""

from .download import DownloadHandler
from .transfer_log import TransferLog, TransferState

__all__ = ["DownloadHandler", "TransferLog", "TransferState"]
