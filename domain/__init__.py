"""Pure lead domain: entities, scoring, temperature and scheduling rules."""
