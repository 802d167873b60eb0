"""Constants for feed content records."""

# Placeholder slides created before the rewrite pipeline has produced content
GHOST_SLIDE_ID_PREFIX = "placeholder-"
GHOST_LOADING_CONTENT = "Loading..."
