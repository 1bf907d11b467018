"""Web routes for the image dashboard."""

from flask import Blueprint, abort, current_app, render_template

web_bp = Blueprint("web", __name__)


@web_bp.route("/")
def dashboard():
    """Render main dashboard page."""
    substitutor = current_app.config["substitutor"]
    collector = current_app.config["collector"]
    unverified = {r.original.canonical_name for r in collector.unverified()}
    return render_template(
        "dashboard.html",
        state=substitutor.gate.state(),
        host_mode=substitutor.host_mode.value,
        images=collector.list_images(),
        unverified=unverified,
    )


@web_bp.route("/images/<path:name>")
def image_details(name):
    """Render details of one collected image.

    Args:
        name: Canonical original image name
    """
    record = current_app.config["collector"].get(name)
    if record is None:
        abort(404)
    return render_template("image_details.html", record=record)
