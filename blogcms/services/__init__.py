# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   article_service  : filtered listing + detail + CRUD + link reconciliation
#   comment_service  : reader comments and moderation
#   taxonomy_service : CRUD shared by Category and Tag
#   stats_service    : row counts and schema checks
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
