"""Constants for the ranker module."""

# Engagement weight per interaction type; unlisted types score nothing
INTERACTION_WEIGHTS: dict[str, float] = {
    "share_click": 3.0,  # Deliberate intent to spread the story
    "swipe": 1.0,  # Read past the first slide
    "view": 0.5,  # Impression only
}
