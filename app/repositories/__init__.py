"""레포지토리 패키지 — 데이터베이스 쿼리 계층.

Repository package — Database query layer.
Each repository extends BaseRepository for generic CRUD and declares query
methods that are resolved from a declared statement, a named query, or the
method name itself.
"""
