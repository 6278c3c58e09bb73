"""API package initialization."""
from clinic_scheduler.api.app import create_app
from clinic_scheduler.api.models import BookRequest, RescheduleRequest, RestoreRequest

__all__ = ["create_app", "BookRequest", "RescheduleRequest", "RestoreRequest"]
