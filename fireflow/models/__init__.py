# fireflow/models/__init__.py

"""
Centralizes model imports so that Base.metadata knows every table as soon as
the package is imported (create_tables() and the test fixtures rely on this).
"""

from fireflow.database import Base

# Models from asset.py
from .asset import Asset

# Models from flow.py
from .flow import Flow, RecurringSchedule

# Models from debt.py
from .debt import Debt

# Models from settings.py
from .settings import AssetInterestSetting, TaxSetting, LinkedLedger
