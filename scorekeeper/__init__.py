"""
Scorekeeper backend

Records goals, penalties, attendance and final results for league games and
serves them to the rink-side operator UI. Documents live in a Cosmos DB
database reached through its MongoDB API.
"""

__version__ = "1.4.0"
