from typing import Sequence


NO_INFORMATION_ANSWER = (
    "I don't have that information in the podcast archive. "
    "Try rephrasing your question or asking about a specific episode."
)


def _hosts_clause(host_names: Sequence[str]) -> str:
    if not host_names:
        return ""
    if len(host_names) == 1:
        return f" (not including the host {host_names[0]})"
    return f" (not including the hosts {', '.join(host_names[:-1])} and {host_names[-1]})"


def summary_prompt(
    episode_title: str,
    transcript: str,
    host_names: Sequence[str] = (),
    max_chars: int = 15000,
) -> str:
    """
    Returns the prompt for the episode summary and guest extraction call.

    The transcript is cut to `max_chars` characters.

    Returns:
        Prompt string
    """
    return (
        "You are a helpful assistant that creates podcast summaries and identifies guests.\n\n"
        f'I need a summary and guest list for this podcast episode titled "{episode_title}".\n\n'
        "Please provide:\n"
        "1. A concise 1-2 paragraph summary of the key topics discussed.\n"
        "2. A list of all guests who appear in the episode"
        f"{_hosts_clause(host_names)}.\n\n"
        "Format your response as JSON with two fields:\n"
        '- "summary": String containing the 1-2 paragraph summary\n'
        '- "guests": Array of strings containing guest names\n\n'
        "Here's the transcript:\n"
        f"{transcript[:max_chars]}"
    )


def chat_system_prompt(podcast_name: str, host_names: Sequence[str] = ()) -> str:
    """
    Returns the system prompt for the conversational agent.
    """
    hosts = f" hosted by {' and '.join(host_names)}" if host_names else ""
    return (
        f"You are an AI assistant for {podcast_name}{hosts}.\n\n"
        "Answer questions based on the information retrieved from the knowledge base. "
        "Use the tools effectively:\n"
        "1. For general questions, use getRelevantContent to retrieve matching passages\n"
        "2. To find which episodes cover a topic, use findEpisodesBySummary\n"
        "3. For exact names or terms, use searchEpisodeContent\n"
        "4. To explore available episodes, use listPodcastEpisodes\n"
        "5. For a specific episode, use getEpisodeSummary or getEpisodeContent\n"
        "6. For questions about guests, use listPodcastGuests\n"
        "7. For statistics and the latest episode, use getPodcastStats\n\n"
        "If no relevant information is found in the knowledge base, tell the user "
        "you don't have that specific information instead of guessing.\n\n"
        "Keep your answers concise, accurate, and focused on the podcast content."
    )
