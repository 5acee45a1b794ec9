"""
Operations layer.

Composes database queries into the multi-step workflows the services run
inside a single transaction:

- ScoreOperations: predictions, race results and score rows, plus the
  per-scope candidate loading used by leaderboards
"""
