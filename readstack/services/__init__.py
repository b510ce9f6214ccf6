# Services package.
#
# Each module holds the workflow for one area and returns
# ``readstack.errors.Result`` values instead of raising:
#
#   auth_service    : sign-up, email verification, sign-in, password reset
#   article_service : article CRUD, feed, like/dislike/block toggles
#   user_service    : profile, password change, preferences
#
# Collaborators (session, cache, mailer, asset host) are passed in as
# arguments; the router layer owns the transaction via ``get_db``.
