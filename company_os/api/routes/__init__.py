from company_os.api.routes.notifications import router as notifications_router

__all__ = ["notifications_router"]
