from fastapi import APIRouter

from traincrm.api.v1.endpoints.crm import (
    leads,
    contacts,
    accounts,
    activities,
    opportunities,
    revenue,
    campaigns,
    dashboard,
)

crm_router = APIRouter(prefix="/crm")

crm_router.include_router(leads.router, prefix="/leads", tags=["CRM - Leads"])
crm_router.include_router(contacts.router, prefix="/contacts", tags=["CRM - Contacts"])
crm_router.include_router(accounts.router, prefix="/accounts", tags=["CRM - Accounts"])
crm_router.include_router(activities.router, prefix="/activities", tags=["CRM - Activities"])
crm_router.include_router(opportunities.router, prefix="/opportunities", tags=["CRM - Opportunities"])
crm_router.include_router(revenue.router, prefix="/revenue", tags=["CRM - Revenue"])
crm_router.include_router(campaigns.router, prefix="/campaigns", tags=["CRM - Campaigns"])
crm_router.include_router(dashboard.router, prefix="/dashboard", tags=["CRM - Dashboard"])
