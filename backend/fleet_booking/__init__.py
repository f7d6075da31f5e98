"""Fleet booking console: pricing, offering reconciliation and booking wizard."""
