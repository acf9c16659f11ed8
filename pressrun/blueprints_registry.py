import importlib
import logging

logger = logging.getLogger(__name__)

BLUEPRINTS = (
    ('pressrun.blueprints.api.production_routes.production_api_bp', 'Production API'),
    ('pressrun.blueprints.api.inventory_routes.inventory_api_bp', 'Inventory API'),
)


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    registered = []
    for import_path, description in BLUEPRINTS:
        module_path, bp_name = import_path.rsplit('.', 1)
        blueprint = getattr(importlib.import_module(module_path), bp_name)
        app.register_blueprint(blueprint)
        registered.append(description)

    logger.info("Registered blueprints: %s", ", ".join(registered))
    return registered
