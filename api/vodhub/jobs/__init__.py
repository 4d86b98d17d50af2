from .refresh import refresh_user_media_job

__all__ = ["refresh_user_media_job"]
"""Background job modules for RQ workers and schedulers."""
