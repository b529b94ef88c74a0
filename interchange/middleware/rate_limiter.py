"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in interchange/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from interchange.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Parse/import/export read whole files into memory per request
PROGRAMME_LIMIT = "30/minute"
ADMIN_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Programme interchange:  30/minute
        - Demo mode toggle:       60/minute
        - Audit reads:            200/minute
        - Health check:           exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("programme")
    if bp:
        limiter.limit(PROGRAMME_LIMIT)(bp)

    bp = app.blueprints.get("demo_mode")
    if bp:
        limiter.limit(ADMIN_LIMIT)(bp)

    bp = app.blueprints.get("audit")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    # Health checks are exempt
    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — programme: %s, demo-mode: %s, audit: %s",
        PROGRAMME_LIMIT, ADMIN_LIMIT, READ_LIMIT,
    )
