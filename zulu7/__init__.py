"""
Zulu7 dashboard server
───────────────────────
    from zulu7.server import create_app
    app = create_app()
"""

__version__ = "1.0.0"
