"""Scrape de métricas de sensores y escritura a Postgres / Kafka."""
