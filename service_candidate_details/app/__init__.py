"""
Candidate Details Service package.

Returns enriched candidate profiles for a batch of candidate identifiers,
scoped to a (caller, project) pair. Profiles come from a persistent cache
when fresh, and from a single batched call to the external candidate data
provider otherwise.

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.models: Cache records, batch request/response types.
- app.adapters: HTTP clients for the auth service and the data provider.
- app.caching: Staleness evaluation, batch partitioning, and the
  fetch-merge-assemble pipeline.
- app.persistence: Keyed store engines (PostgreSQL, in-memory).
- app.domain: Request authentication.
"""
