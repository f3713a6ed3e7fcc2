"""Client-side session sync core for a four-player, two-team drawing and guessing game."""
