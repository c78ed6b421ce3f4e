# API routes
from src.api.routes import debug
from src.api.routes import health
from src.api.routes import webhooks_clerk

__all__ = ["debug", "health", "webhooks_clerk"]
