"""
Basepack

Server-side grid and form components bound to SQLAlchemy models.

    from basepack.components import GridPanel, FormPanel
    from basepack.components.registry import ComponentRegistry
"""

__version__ = "0.1.0"
