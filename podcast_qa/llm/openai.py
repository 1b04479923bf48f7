from openai import AsyncOpenAI

from podcast_qa.config import PodcastQAConfig


def get_openai_async_client(config: PodcastQAConfig) -> AsyncOpenAI:
    """
    Initialize the async OpenAI client used for transcription, embeddings and chat.

    Args:
        config: Configuration carrying the API key.

    Returns:
        AsyncOpenAI client instance

    Raises:
        MissingCredentialError: If OPENAI_API_KEY is not configured.
    """
    return AsyncOpenAI(api_key=config.require_openai_key())
