from fastapi import APIRouter, Depends
from app.dependencies import get_tenant
from app.models.tenant import Tenant
from app.schemas.tenant import TenantResponse

router = APIRouter()


@router.get("", response_model=TenantResponse)
def get_my_tenant(tenant: Tenant = Depends(get_tenant)):
    """
    Your organization.

    Stays readable while the tenant is suspended, so the client can show
    the suspension notice and reason.
    """
    return tenant
