from idlink.application.api.v2.routes import health, oauth, session

__all__ = ["health", "oauth", "session"]
