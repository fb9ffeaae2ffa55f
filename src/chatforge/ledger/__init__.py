"""Crystal ledger and operation prices."""

from .costs import IMAGE_GENERATION_COST, MODEL_COSTS, image_cost, text_cost
from .ledger import Charge, ChargeStatus, CreditLedger

__all__ = [
    "Charge",
    "ChargeStatus",
    "CreditLedger",
    "IMAGE_GENERATION_COST",
    "MODEL_COSTS",
    "image_cost",
    "text_cost",
]
