"""
Service layer: async workflows over the database and the pure scoring
components (race scoring, leaderboards, live races, streaks, milestones,
notifications and runtime configuration).
"""
