from . import attendance, events, games, health, rosters, stats

__all__ = ["attendance", "events", "games", "health", "rosters", "stats"]
