"""Single-page fetching behind anti-bot protection, with proxy leasing and one unlock retry."""
