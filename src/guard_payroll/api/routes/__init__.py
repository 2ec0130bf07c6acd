"""API routes."""

from guard_payroll.api.routes.health import router as health_router
from guard_payroll.api.routes.payrolls import router as payrolls_router

__all__ = ["health_router", "payrolls_router"]
