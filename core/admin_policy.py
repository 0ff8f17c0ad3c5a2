# =============================================================================
# core/admin_policy.py - Administrative rights policy signal
# =============================================================================

import logging
from typing import Optional

from core.models import AdminSignal

TRUTHY_FACT = "true"


def interpret_fact(value: Optional[str]) -> AdminSignal:
    """Map a raw fact value onto the three-valued signal"""
    if value is None:
        return AdminSignal.UNAVAILABLE
    value = value.strip()
    if not value:
        return AdminSignal.UNAVAILABLE
    if value.lower() == TRUTHY_FACT:
        return AdminSignal.GRANT
    return AdminSignal.DENY


class AdminPolicy:
    """Reads the external admin fact from a literal value or a fact file"""

    def __init__(self, fact_value: Optional[str] = None, fact_file: Optional[str] = None):
        self.fact_value = fact_value
        self.fact_file = fact_file
        self.logger = logging.getLogger(self.__class__.__name__)

    def signal(self) -> AdminSignal:
        """Evaluate the signal; an unreadable fact yields UNAVAILABLE"""
        if self.fact_value is not None:
            return interpret_fact(self.fact_value)

        if not self.fact_file:
            return AdminSignal.UNAVAILABLE

        try:
            with open(self.fact_file, "r", encoding="utf-8") as file:
                return interpret_fact(file.read())
        except OSError as e:
            self.logger.warning(f"Admin fact file {self.fact_file} unreadable: {e}")
            return AdminSignal.UNAVAILABLE
