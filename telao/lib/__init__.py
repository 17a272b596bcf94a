"""Library modules for accounts, tokens, media storage, playlist state, projector frames and backups."""
