"""Kerala Riders API: members, events and Strava activity sync."""

__version__ = "0.1.0"
