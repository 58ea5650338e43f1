"""
docroute CLI.

Usage:
    docroute routes  <module:spec>
    docroute check   <module:spec>
    docroute openapi <module:spec> [--output openapi.json]
    docroute serve   <module:spec> [--host 0.0.0.0 --port 8000]

``<module:spec>`` names an ``AppSpec`` (or a callable returning one).
"""

__version__ = "0.1.0"
__cli_name__ = "docroute"
