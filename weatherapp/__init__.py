"""Current, hourly and weekly weather for a short list of saved places."""
