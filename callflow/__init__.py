"""Call ingestion and enrichment pipeline."""
