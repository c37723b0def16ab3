# Services package.
#
#   comment_store: SQL access for comments + per-object counter rows
#   comment_repository: count cache-aside, cache nudges, reply previews
#   audience: addressee / owner / thread-root resolution
#   comment_service: request orchestration + feed events
#
# The store takes an AsyncSession per call; everything above it owns a
# session factory and opens short-lived sessions per operation.
