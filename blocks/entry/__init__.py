"""Entry blocks (market / dip / limit buys)."""
