"""
User-facing alerts for resource and validation failures.

Components report problems the user must act on (model not loadable,
microphone unavailable, a file that could not be classified) through an
AlertSink. The assistant session collects them for display; the default
sink only logs.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Alert(BaseModel):
    message: str
    hint: Optional[str] = Field(None, description="Corrective action for the user")
    created_at: datetime = Field(default_factory=datetime.now)


AlertSink = Callable[[Alert], None]


def log_alert(alert: Alert) -> None:
    """Default sink: write the alert to the log."""
    if alert.hint:
        logger.warning(f"{alert.message} ({alert.hint})")
    else:
        logger.warning(alert.message)
