"""Flask web layer for ROPA Guardian."""
