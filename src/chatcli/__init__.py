"""chatcli - a terminal chat client for OpenAI chat completions."""

__version__ = "0.1.0"
