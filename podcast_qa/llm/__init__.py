"""This package contain modules related to large language models (LLMs).
prompts.py : Contain instruction prompts
openai.py : Contain OpenAI client initialization
"""

from .openai import get_openai_async_client
from .prompts import chat_system_prompt, summary_prompt


__all__ = ["get_openai_async_client", "chat_system_prompt", "summary_prompt"]
