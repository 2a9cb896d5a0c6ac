"""DuckDB persistence for the ledger event log."""
