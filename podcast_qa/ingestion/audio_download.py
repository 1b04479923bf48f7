"""
Audio download for podcast episodes.

Files are written to the audio directory as e{number}_{sanitized_title}.mp3
and an existing file is never downloaded twice.
"""

import logging
import os
import re
import time
from typing import Optional

import requests

from podcast_qa.logger import log_function


logger = logging.getLogger("ingestion")

DOWNLOAD_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Accept": "audio/mpeg, audio/*, */*",
}
MIN_AUDIO_BYTES = 100 * 1024


def sanitize_filename(title: Optional[str], max_length: int = 100) -> str:
    """
    Lowercase a title and keep only letters, digits and underscores.

    Long titles are cut at a word boundary.
    """
    if not title:
        return "unknown_episode"

    safe = re.sub(r"[^a-z0-9\s]", "", title.lower())
    safe = re.sub(r"\s+", "_", safe).strip("_")

    if len(safe) > max_length:
        safe = safe[:max_length].rsplit("_", 1)[0]

    return safe or "unknown_episode"


def generate_filename(episode_number: int, title: str) -> str:
    return f"e{episode_number}_{sanitize_filename(title)}.mp3"


def _remove_partial(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


@log_function(logger_name="ingestion", log_execution_time=True)
def download_episode(
    episode_number: int,
    title: str,
    url: str,
    workspace: str = "data/audio",
    max_retries: int = 3,
    min_bytes: int = MIN_AUDIO_BYTES,
) -> tuple[bool, str]:
    """
    Download one episode's audio with retries and exponential backoff.

    Args:
        episode_number: Episode number used in the filename.
        title: Episode title used in the filename.
        url: Enclosure URL.
        workspace: Destination directory.
        max_retries: Attempts before giving up.
        min_bytes: Smaller downloads are treated as failures.

    Returns:
        tuple[bool, str]: (success, file path or "").
    """
    os.makedirs(workspace, exist_ok=True)
    filename = generate_filename(episode_number, title)
    filepath = os.path.join(workspace, filename)

    if os.path.exists(filepath):
        logger.info(f"Audio for '{title[:40]}' already downloaded")
        return True, filepath

    for attempt in range(max_retries):
        try:
            logger.info(f"Downloading {filename} (attempt {attempt + 1}/{max_retries})")
            with requests.get(url, stream=True, headers=DOWNLOAD_HEADERS, timeout=120) as response:
                response.raise_for_status()
                with open(filepath, "wb") as f:
                    for chunk in response.iter_content(chunk_size=8192):
                        if chunk:
                            f.write(chunk)

            file_size = os.path.getsize(filepath)
            if file_size < min_bytes:
                logger.warning(f"File {filename} is suspiciously small: {file_size} bytes")
                _remove_partial(filepath)
            else:
                logger.info(f"Downloaded {filename} ({file_size:,} bytes)")
                return True, filepath

        except (requests.RequestException, OSError) as e:
            logger.warning(f"Download attempt {attempt + 1} failed for {filename}: {e}")
            _remove_partial(filepath)

        if attempt < max_retries - 1:
            wait_time = 2**attempt
            logger.info(f"Waiting {wait_time}s before retry...")
            time.sleep(wait_time)

    logger.error(f"Failed to download {filename} after {max_retries} attempts")
    return False, ""
