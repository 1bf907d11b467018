"""Web UI module for the image substitutor dashboard."""

from pathlib import Path

from flask import Flask


def create_app(substitutor, collector):
    """Create and configure Flask application.

    Args:
        substitutor: ImageNameSubstitutor whose state is displayed
        collector: ImageCollector holding the collected images

    Returns:
        Configured Flask application
    """
    web_dir = Path(__file__).parent

    app = Flask(__name__, template_folder=str(web_dir / "templates"))

    app.config["substitutor"] = substitutor
    app.config["collector"] = collector

    from . import routes

    app.register_blueprint(routes.web_bp)

    return app
