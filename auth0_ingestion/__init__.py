"""Auth0 identity graph ingestion.

Reads the account, users and clients (applications) of an Auth0 tenant from
the Management API, enumerating users past the API's 1000-result search
window, and upserts them as graph entities and relationships into PostgreSQL.
"""
