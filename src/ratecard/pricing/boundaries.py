"""Market band computation and market-position classification.

The band is centred on the locally calculated price and spans 0.8x to 1.2x
of it.  A chosen price is classified by where it falls inside the band.
"""

from decimal import Decimal

from pydantic import BaseModel

from ratecard.domain.types import MarketPosition
from ratecard.pricing.calculator import to_whole_units

BAND_LOWER = Decimal("0.8")
BAND_UPPER = Decimal("1.2")

# Upper bounds (exclusive) of each position as a fraction of the band width
BELOW_MARKET_BOUND = Decimal("0.3")
AT_MARKET_BOUND = Decimal("0.7")
ABOVE_MARKET_BOUND = Decimal("0.9")


class MarketBand(BaseModel, frozen=True):
    """The ``[minimum, maximum]`` range around a calculated price.

    Attributes:
        center: The calculated price the band is built around.
        minimum: Lower edge of the band.
        maximum: Upper edge of the band.
    """

    center: Decimal
    minimum: Decimal
    maximum: Decimal

    @property
    def is_degenerate(self) -> bool:
        return self.minimum == self.maximum


def market_band(calculated_price: Decimal) -> MarketBand:
    """Build the market band for a calculated price.

    Args:
        calculated_price: The local calculated price (band centre).

    Returns:
        A MarketBand with edges in whole currency units.
    """
    return MarketBand(
        center=calculated_price,
        minimum=to_whole_units(calculated_price * BAND_LOWER),
        maximum=to_whole_units(calculated_price * BAND_UPPER),
    )


def classify_market_position(price: Decimal, band: MarketBand) -> MarketPosition:
    """Classify a chosen price against a market band.

    Position logic, by ``(price - min) / (max - min)``:
    1. Degenerate band (``min == max``): AT_MARKET
    2. Below 0.3 (including any price at or below ``min``): BELOW_MARKET
    3. Below 0.7: AT_MARKET
    4. Below 0.9: ABOVE_MARKET
    5. Otherwise: PREMIUM

    Args:
        price: The chosen price to classify.
        band: The band computed from the local calculated price.

    Returns:
        The MarketPosition of the price.
    """
    if band.is_degenerate:
        return MarketPosition.AT_MARKET

    ratio = (price - band.minimum) / (band.maximum - band.minimum)

    if ratio < BELOW_MARKET_BOUND:
        return MarketPosition.BELOW_MARKET
    if ratio < AT_MARKET_BOUND:
        return MarketPosition.AT_MARKET
    if ratio < ABOVE_MARKET_BOUND:
        return MarketPosition.ABOVE_MARKET
    return MarketPosition.PREMIUM
