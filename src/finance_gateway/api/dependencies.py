"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, Request

from finance_gateway.gateway.errors import ValidationError
from finance_gateway.gateway.facade import FinancialGateway


def get_gateway(request: Request) -> FinancialGateway:
    """Gateway instance built at startup."""
    return request.app.state.gateway


async def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header()] = None
) -> str:
    """Extract tenant ID from header."""
    if not x_tenant_id or not x_tenant_id.strip():
        raise ValidationError("X-Tenant-ID header is required", field="X-Tenant-ID")
    return x_tenant_id.strip()


# Type aliases for cleaner dependency injection
Gateway = Annotated[FinancialGateway, Depends(get_gateway)]
TenantId = Annotated[str, Depends(get_tenant_id)]
