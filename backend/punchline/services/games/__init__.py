"""Game domain services: catalog, draw pool, round state machine,
orchestration and transactional persistence.

HTTP routes and socket handlers call into ``gameplay``; everything below it
is transport-free so it can be exercised directly in tests.
"""
