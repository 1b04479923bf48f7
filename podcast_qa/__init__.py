"""podcast_qa: question answering over a transcribed podcast archive.

Ingestion path: feed sync -> audio download -> segmentation -> transcription
-> chunking -> embedding -> summarization. Serving path: retrieval engine and
a tool-calling conversational agent reading from the same store.
"""

__version__ = "0.1.0"
