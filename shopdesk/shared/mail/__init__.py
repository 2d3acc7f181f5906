from .email import EmailService, get_email_service

__all__ = ["EmailService", "get_email_service"]
