"""
Ingestion package for the podcast QA system.

1. Feed discovery (feed.py):
   - Fetches episode metadata from the RSS feed
   - Inserts unseen episodes into the database

2. Audio download (audio_download.py):
   - Downloads audio files from enclosure URLs
   - Stores files as e{number}_{title}.mp3
"""

from .feed import fetch_feed_episodes, parse_feed, parse_pub_date, sync_to_database
from .audio_download import download_episode, generate_filename, sanitize_filename

__all__ = [
    "fetch_feed_episodes",
    "parse_feed",
    "parse_pub_date",
    "sync_to_database",
    "download_episode",
    "generate_filename",
    "sanitize_filename",
]
