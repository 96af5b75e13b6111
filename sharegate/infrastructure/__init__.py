# Infrastructure layer - database, repositories, blob storage
"""
Infrastructure layer contains:
- Database connection management
- Async repositories (share token store, sessions, folders, files)
- Blob storage adapters

This layer depends on the domain layer, not vice versa.
"""
