"""
Blueprint registration for the tutoring API.

All blueprints carry full /api/... paths and are registered without prefixes.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.students import bp as students_bp
    from blueprints.content import bp as content_bp
    from blueprints.homework import bp as homework_bp
    from blueprints.quiz import bp as quiz_bp
    from blueprints.reports import bp as reports_bp
    from blueprints.ai import bp as ai_bp

    app.register_blueprint(students_bp)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(homework_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(ai_bp)
    # Last: its /api/<kind_slug> routes are the most generic.
    app.register_blueprint(content_bp)
