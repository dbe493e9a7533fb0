from .models import Task, TABLE, utc_now

__all__ = ["Task", "TABLE", "utc_now"]
