"""Core - Dominio compartido por scrape y sinks."""
