"""
Fixed lookup values shared by the backend services and the submission core.
These are static tables; nothing here is mutated at runtime.
"""

import os
from decimal import Decimal

# Asset types known to the asset service
ASSET_CASH = "cash"
ASSET_DEPOSIT = "deposit"
ASSET_STOCK = "stock"
ASSET_ETF = "etf"
ASSET_BOND = "bond"
ASSET_CRYPTO = "crypto"
ASSET_REAL_ESTATE = "real_estate"
ASSET_METALS = "metals"
ASSET_DEBT = "debt"
ASSET_OTHER = "other"

ASSET_TYPES = {
    ASSET_CASH, ASSET_DEPOSIT, ASSET_STOCK, ASSET_ETF, ASSET_BOND,
    ASSET_CRYPTO, ASSET_REAL_ESTATE, ASSET_METALS, ASSET_DEBT, ASSET_OTHER,
}

# Holdings whose balance counts units (shares/coins) rather than money
SHARE_BASED_ASSET_TYPES = {ASSET_STOCK, ASSET_ETF, ASSET_CRYPTO, ASSET_BOND}

# Record families the record services create
FLOW_INCOME = "income"
FLOW_EXPENSE = "expense"
FLOW_TRANSFER = "transfer"
FLOW_TYPES = {FLOW_INCOME, FLOW_EXPENSE, FLOW_TRANSFER}

# Recurring frequencies accepted by the recurring-schedule service
RECURRING_NONE = "none"
RECURRING_FREQUENCIES = {"weekly", "biweekly", "monthly", "quarterly", "yearly"}

# Interest payment periods -> periods per year
PERIODS_PER_YEAR = {
    "weekly": Decimal(52),
    "monthly": Decimal(12),
    "quarterly": Decimal(4),
    "semi_annual": Decimal(2),
    "annual": Decimal(1),
    "biennial": Decimal("0.5"),
    "triennial": Decimal(1) / Decimal(3),
    "quinquennial": Decimal("0.2"),
}
DEFAULT_PAYMENT_PERIOD = "monthly"

# Metal weights, grams per display unit
GRAMS_PER_UNIT = {
    "gram": Decimal(1),
    "ounce": Decimal("31.1035"),   # troy ounce
    "tael": Decimal("37.429"),
    "kg": Decimal(1000),
}
# Units quoted by commodity price feeds, grams per unit
PRICE_QUOTE_GRAMS = {
    "troy_oz": Decimal("31.1035"),
    "pound": Decimal("453.592"),
}
METAL_LABELS = {
    "gold": "Gold",
    "silver": "Silver",
    "platinum": "Platinum",
    "palladium": "Palladium",
    "copper": "Copper",
}
METAL_UNIT_SHORT_LABELS = {
    "gram": "g",
    "ounce": "oz",
    "tael": "tael",
    "kg": "kg",
}

# Dividend withholding: one market overrides, everything else takes the default
MARKET_SG = "SG"
MARKET_US = "US"
DEFAULT_US_DIVIDEND_WITHHOLDING_RATE = Decimal(
    os.getenv("US_DIVIDEND_WITHHOLDING_RATE", "0.30")
)
DEFAULT_SG_DIVIDEND_WITHHOLDING_RATE = Decimal(
    os.getenv("SG_DIVIDEND_WITHHOLDING_RATE", "0.00")
)

DEFAULT_CURRENCY = os.getenv("PREFERRED_CURRENCY", "USD")

# Read caches display layers refetch after a submission
CACHE_ASSETS = "assets"
CACHE_TRANSACTIONS = "transactions"
CACHE_STATS = "stats"
CACHE_EXPENSE_STATS = "expense_stats"
CACHE_DEBTS = "debts"
CACHE_RECURRING = "recurring_schedules"
CACHE_INTEREST_SETTINGS = "interest_settings"
CACHE_LINKED_LEDGERS = "linked_ledgers"
