"""Discord bot that schedules tabletop sessions."""
