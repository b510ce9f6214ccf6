# Persistence for the two aggregates.
#
#   user_store    : users keyed by email
#   article_store : articles plus per-user vote / block membership
#
# Functions take the request's AsyncSession first and flush but never
# commit; the transaction boundary belongs to ``get_db``.
