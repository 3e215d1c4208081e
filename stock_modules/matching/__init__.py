"""
Matching Module (``stock_modules.matching``).

Responsibility
--------------
The process-wide matching settings record and invoice three-way matching
with manual overrides.  Tolerance decisions are computed by
``stock_engines.matching.MatchingEngine``; this package only loads the
inputs and persists settings and overrides.
"""

from stock_modules.matching.config import MatchingSettings
from stock_modules.matching.orm import MatchOverrideModel, MatchingSettingsModel
from stock_modules.matching.settings import MatchingSettingsService
from stock_modules.matching.service import InvoiceMatchingService

__all__ = [
    "InvoiceMatchingService",
    "MatchOverrideModel",
    "MatchingSettings",
    "MatchingSettingsModel",
    "MatchingSettingsService",
]
