"""Risk blocks (position sizing, drawdown circuit breaker)."""
