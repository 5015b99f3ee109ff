"""
school_services -- Package init and public API.

Responsibility:
    Composition services that turn a snapshot plus a reference date into
    dashboard view-models.  This is the only layer that reads the clock
    or the ledger policy.

Architecture position:
    Services -- composition over engines + kernel + config.

    Dependency direction:
        school_services/ -> school_engines/  (allowed)
        school_services/ -> school_kernel/   (allowed)
        school_services/ -> school_config/   (allowed)
        school_engines/  -> school_services/ (FORBIDDEN)
        school_kernel/   -> school_services/ (FORBIDDEN)
"""

from school_kernel.logging_config import get_logger

logger = get_logger("services")

from school_services.dashboard_service import DashboardService
from school_services.views import (
    BudgetComparisonView,
    MonthlyFinanceView,
    RosterView,
    StudentStatusView,
    TeacherOverview,
)

__all__ = [
    "BudgetComparisonView",
    "DashboardService",
    "MonthlyFinanceView",
    "RosterView",
    "StudentStatusView",
    "TeacherOverview",
]
