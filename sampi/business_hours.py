# Business Hours Gate for SAMPi
# Switches the agent between reading ECR data and idle/update mode

import logging
from datetime import datetime
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class BusinessHoursGate:
    """Active between opening_hour and closing_hour inclusive, Idle otherwise.

    on_close runs once on every Active -> Idle transition. With force_active
    the gate still goes Idle (and runs on_close) but check() keeps returning
    True so the parser can be exercised at any hour.
    """

    def __init__(self, opening_hour: int = 6, closing_hour: int = 23,
                 on_close: Optional[Callable[[], None]] = None,
                 force_active: bool = False):
        self.opening_hour = opening_hour
        self.closing_hour = closing_hour
        self.on_close = on_close
        self.force_active = force_active
        self.idle = False

    def is_business_hours(self, now: datetime) -> bool:
        return self.opening_hour <= now.hour <= self.closing_hour

    def check(self, now: Optional[datetime] = None) -> bool:
        """Update Active/Idle state; True if ECR data should be read"""
        now = now or datetime.now()

        if self.is_business_hours(now):
            if self.idle:
                logger.info("Business hours started, resuming data collection")
            self.idle = False
            return True

        if not self.idle:
            logger.info("Outside business hours (%02d-%02d), entering idle mode",
                        self.opening_hour, self.closing_hour)
            self.idle = True
            if self.on_close:
                self.on_close()

        return self.force_active
