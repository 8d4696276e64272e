"""
HTTP — FastAPI app over the checkout services.

    from orderflow import http as H

    app = H.create_app(H.Services.of(checkout))
"""

from orderflow.http._app import STATUS_FOR_KIND, Services, create_app, unwrap
from orderflow.http import _models as models

__all__ = ("STATUS_FOR_KIND", "Services", "create_app", "unwrap", "models")
