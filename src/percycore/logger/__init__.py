"""Logger facility shared by the control API and its SDK clients.

Every log call is recorded in an ordered message buffer (exposed to
testing-mode clients) and forwarded to stdlib logging.

Public API:
    PercyLogger -- Level-filtered logger owning a message buffer
    MessageBuffer -- Ordered, clearable buffer of log records
    LogMessage -- A single locally produced log record
"""

from percycore.logger.core import PercyLogger, ScopedLogger
from percycore.logger.messages import LogMessage, MessageBuffer

__all__ = ["LogMessage", "MessageBuffer", "PercyLogger", "ScopedLogger"]
