"""Market model, pricing engine, and package bundling.

Re-exports key functions and types for convenient access:
    from ratecard.pricing import calculate_price, classify_market_position, PricingEngine
"""

from ratecard.pricing.boundaries import (
    MarketBand,
    classify_market_position,
    market_band,
)
from ratecard.pricing.calculator import (
    PriceBreakdown,
    calculate_price,
    price_for_creator,
    to_whole_units,
)
from ratecard.pricing.engine import (
    FALLBACK_PACKAGE_TEMPLATES,
    PricingEngine,
    PricingOutcome,
    acceptance_rate,
)
from ratecard.pricing.packages import (
    build_package,
    compute_savings,
    individual_total,
    remove_package,
    revise_package,
)
from ratecard.pricing.rate_cards import (
    FALLBACK_MINIMUM,
    MACRO_FLOORS,
    MEGA_FLOORS,
    get_base_rate,
    get_floor,
)

__all__ = [
    "FALLBACK_MINIMUM",
    "FALLBACK_PACKAGE_TEMPLATES",
    "MACRO_FLOORS",
    "MEGA_FLOORS",
    "MarketBand",
    "PriceBreakdown",
    "PricingEngine",
    "PricingOutcome",
    "acceptance_rate",
    "build_package",
    "calculate_price",
    "classify_market_position",
    "compute_savings",
    "get_base_rate",
    "get_floor",
    "individual_total",
    "market_band",
    "price_for_creator",
    "remove_package",
    "revise_package",
    "to_whole_units",
]
