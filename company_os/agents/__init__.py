from company_os.agents.notification_service import app as notification_app

__all__ = ["notification_app"]
