"""Flask application factory."""
from flask import Flask

from newsletter_intel.db.config import DBConfig
from newsletter_intel.db.session import init_db
from newsletter_intel.log import configure_logging
from newsletter_intel.pipeline.processor import BackgroundProcessor
from newsletter_intel.pipeline.settings import PipelineSettings


def create_app(
    settings: PipelineSettings | None = None,
    *,
    db_config: DBConfig | None = None,
    processor: BackgroundProcessor | None = None,
    init_database: bool = True,
) -> Flask:
    """Build the app. A processor may be injected (tests); otherwise one is built per request."""
    from newsletter_intel.api.pipeline_routes import bp as pipeline_bp

    settings = settings or PipelineSettings()
    configure_logging(settings.log_level)
    if init_database:
        init_db(db_config)

    app = Flask(__name__)
    app.config["PIPELINE_SETTINGS"] = settings
    app.config["PIPELINE_PROCESSOR"] = processor
    app.register_blueprint(pipeline_bp)
    return app
