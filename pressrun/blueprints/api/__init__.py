"""JSON APIs for production batches and store inventory."""

from .inventory_routes import inventory_api_bp
from .production_routes import production_api_bp

__all__ = ['inventory_api_bp', 'production_api_bp']
