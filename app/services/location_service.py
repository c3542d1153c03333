import logging
from typing import Mapping

from app.config import CheckoutConfig


logger = logging.getLogger(__name__)


class LocationResolver:
    """Maps a shipping address to the stock location that fulfills it."""

    def __init__(self, config: CheckoutConfig):
        self.province_locations = {k.upper(): v for k, v in config.province_locations.items()}
        self.default_location = config.default_location

    def resolve(self, address: Mapping) -> str:
        province = str(address.get("province") or "").strip().upper()
        location = self.province_locations.get(province)
        if location is None:
            # Unmapped provinces ship from the default location rather than blocking checkout
            logger.warning(
                f"No fulfillment location mapped for province '{province or '<blank>'}', "
                f"falling back to {self.default_location}"
            )
            return self.default_location
        return location
