"""SQL generation and data source loading for the query-engine backend."""
