"""Infrastructure adapters: logging, tracing, database, messaging and email."""
