"""Exit blocks. All of them act on the first open position."""
