"""MCQ Prep session engine: sampling, timers, attempt ledger, lifecycle, review and analytics."""
