from __future__ import annotations

# Teams / seats
MAX_PLAYERS = 4
MAX_PLAYERS_PER_TEAM = 2

# Challenge creation
CHALLENGES_PER_PLAYER = 3
FORBIDDEN_WORDS_PER_CHALLENGE = 3
MIN_WORD_LENGTH = 2

# Scoring
INITIAL_TEAM_SCORE = 100
CORRECT_GUESS_POINTS = 25
WRONG_GUESS_PENALTY = -1
REGENERATION_PENALTY = -10

# Timing (seconds)
ROUND_DURATION_SEC = 5 * 60
ROUND_WARNING_SEC = 60
DEFAULT_POLL_INTERVAL_SEC = 1.0
TEAM_CHANGE_DEBOUNCE_SEC = 0.3
