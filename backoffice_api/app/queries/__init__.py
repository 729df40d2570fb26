"""
Parameterized SQL text, one module per feature.

Statements use ``?`` placeholders.  Templates containing ``{ids}`` are
expanded with ``core.sql.placeholders`` for ``IN (...)`` lists before
execution; nothing derived from request data is ever formatted into
the SQL text.
"""
