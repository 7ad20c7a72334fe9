"""Case domain package: models, story generation, clue classification,
location maps and the day-by-day investigation rules."""
