"""Login, refresh and logout orchestration."""
