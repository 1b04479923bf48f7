import json
import logging
from dataclasses import dataclass, field
from typing import Sequence

from openai import AsyncOpenAI

from podcast_qa.config import PodcastQAConfig
from podcast_qa.llm.prompts import summary_prompt


logger = logging.getLogger("summarizer")


@dataclass
class EpisodeSummary:
    summary: str = ""
    guests: list[str] = field(default_factory=list)


def parse_summary_response(raw: str, host_names: Sequence[str] = ()) -> EpisodeSummary:
    """Decode the model's JSON answer, degrading field by field.

    A non-JSON answer gives an empty summary and guest list; a missing or
    mistyped field is replaced by its empty value. Host names that slip into
    the guest list are dropped.

    Args:
        raw: Text output of the model.
        host_names: Names never reported as guests.

    Returns:
        EpisodeSummary: Parsed (possibly empty) summary and guests.
    """
    try:
        data = json.loads(raw or "")
    except json.JSONDecodeError:
        logger.warning(f"Summary response is not valid JSON: {raw[:200]!r}")
        return EpisodeSummary()
    if not isinstance(data, dict):
        logger.warning(f"Summary response is not a JSON object: {type(data).__name__}")
        return EpisodeSummary()

    summary = data.get("summary")
    if not isinstance(summary, str):
        logger.warning("Summary response has no 'summary' string")
        summary = ""

    guests = data.get("guests")
    if not isinstance(guests, list):
        logger.warning("Summary response has no 'guests' list")
        guests = []

    hosts = {name.strip().lower() for name in host_names}
    seen = set()
    clean_guests = []
    for guest in guests:
        if not isinstance(guest, str) or not guest.strip():
            continue
        name = guest.strip()
        if name.lower() in hosts or name.lower() in seen:
            continue
        seen.add(name.lower())
        clean_guests.append(name)

    return EpisodeSummary(summary=summary.strip(), guests=clean_guests)


class EpisodeSummarizer:
    """Produce a short synopsis and guest list for an episode.

    Args:
        client: Async OpenAI client.
        model: Chat model used for the structured-output call.
        host_names: Hosts excluded from the guest list.
        max_chars: Transcript characters sent to the model.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        host_names: Sequence[str] = (),
        max_chars: int = 15000,
    ):
        self.client = client
        self.model = model
        self.host_names = list(host_names)
        self.max_chars = max_chars

    @classmethod
    def from_config(cls, client: AsyncOpenAI, config: PodcastQAConfig) -> "EpisodeSummarizer":
        return cls(
            client,
            model=config.summary_model,
            host_names=config.host_names,
            max_chars=config.summary_max_chars,
        )

    async def summarize(self, transcript: str, title: str) -> EpisodeSummary:
        """Generate a summary and guest list from transcript text.

        Args:
            transcript: Full transcript; only the first `max_chars` are sent.
            title: Episode title, included in the prompt.

        Returns:
            EpisodeSummary: Empty fields when the answer is malformed.

        Raises:
            openai.APIError: If the request itself fails.
        """
        if not transcript or not transcript.strip():
            logger.warning(f"Empty transcript for '{title}', skipping summary")
            return EpisodeSummary()

        logger.info(f"Calling {self.model} for summary of '{title}'")
        response = await self.client.responses.create(
            model=self.model,
            input=summary_prompt(title, transcript, self.host_names, self.max_chars),
            text={"format": {"type": "json_object"}},
        )
        result = parse_summary_response(response.output_text, self.host_names)
        logger.info(f"Summary for '{title}': {len(result.summary)} chars, {len(result.guests)} guest(s)")
        return result
