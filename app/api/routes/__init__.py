"""
API routes.

This module organizes routes into:
- leagues: League, team, delisted-game and phase endpoints
- drafts: Draft lifecycle, picks and presence
- scores: Team score history, leaderboard and season snapshots
- games: Draftable game pool
- scoring: Scoring run trigger and per-game history
"""
