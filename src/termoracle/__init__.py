"""termoracle -- a terminal research assistant that can see.

This package implements a conversational agent that alternates between
a language-model reasoning loop and two tools: a web search provider and
a vision model that describes the images surfaced by the searches. The
analysed images are rendered as a preview grid directly in the terminal.
"""

__version__ = "0.1.0"
