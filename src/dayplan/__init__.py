"""dayplan - recurring plans, time blocks and time logging."""
