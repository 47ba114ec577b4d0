"""
services - Business-logic layer sitting between API and DB.
"""

from services.identity_service import IdentityIssuer         # noqa: F401
from services.ledger_service import ConsumableLedger         # noqa: F401
from services.tools_service import ToolsService              # noqa: F401
from services.consumables_service import ConsumablesService  # noqa: F401
from services.staff_service import StaffService              # noqa: F401
from services.stats_service import StatsService              # noqa: F401
from services.auth_history_service import AuthHistoryService  # noqa: F401
