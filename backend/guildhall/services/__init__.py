# Services package init
"""
Guildhall Backend — Services Layer
====================================

Service Inventory:
    - MemberDirectory:     read-only member lookups (active check, summaries)
    - NotificationEmitter: append notifications; addressee feed and mark-read
    - ConnectionLedger:    connection-request lifecycle and connection graph

Services are stateless singletons. Each call receives the request's
AsyncSession and only flushes; committing is the session dependency's job.
"""
