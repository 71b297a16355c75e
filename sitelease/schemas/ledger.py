from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class DonationResult(BaseModel):
    fingerprint: str
    amount: Decimal
    extended_days: int
    new_expiry: datetime
    deployments_updated: int = 0
    revived: bool = False
    duplicate: bool = False

    model_config = {"frozen": True}
