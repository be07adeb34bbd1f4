"""
Competition engine

Pure business logic that:
- Accepts explicit inputs (team ids, matches, events, configuration)
- Returns new records or patches (field -> value)
- Does NOT depend on HTTP request/response objects
- Does NOT touch the database (persistence.py is the one exception)
"""
