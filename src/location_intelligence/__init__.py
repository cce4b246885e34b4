"""Location Intelligence MCP Server.

Turn a Brazilian address into an explainable 0-100 affluence score.
Live IBGE income data with city, regional and default fallbacks, a SQLite
score cache, and neighborhood multipliers for the Montes Claros metro area.
"""

__version__ = "0.1.0"
