"""Business logic services used by handlers.

Handlers build the engine lazily so importing a handler module never opens
a database connection.
"""
