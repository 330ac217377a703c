"""League of Legends data platform: match/timeline export to the data lake."""

__version__ = "0.1.0"
