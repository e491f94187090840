from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from order_service.api.deps import CurrentUser, get_db, get_resources, require_admin
from order_service.domain.schemas import DashboardStatsOut, RevenueChartOut, UserOrderStatsOut
from order_service.resources import Resources
from order_service.services.enrichment import book_enricher
from order_service.services.order_stats_service import OrderStatsService

router = APIRouter(prefix="/admin", tags=["admin"])


def get_service(db: Session = Depends(get_db), resources: Resources = Depends(get_resources)) -> OrderStatsService:
    return OrderStatsService(db=db, books=book_enricher(resources.catalog))


@router.get("/dashboard/stats", response_model=DashboardStatsOut)
def dashboard_stats(
    admin: CurrentUser = Depends(require_admin),
    svc: OrderStatsService = Depends(get_service),
):
    return svc.dashboard()


@router.get("/dashboard/revenue-chart", response_model=RevenueChartOut)
def revenue_chart(
    period: str = Query("week"),
    admin: CurrentUser = Depends(require_admin),
    svc: OrderStatsService = Depends(get_service),
):
    return svc.revenue_chart(period)


@router.get("/users/{user_id}/stats", response_model=UserOrderStatsOut)
def user_order_stats(
    user_id: int,
    admin: CurrentUser = Depends(require_admin),
    svc: OrderStatsService = Depends(get_service),
):
    return svc.user_order_stats(user_id)
