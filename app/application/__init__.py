"""Application layer: interfaces, services.

Depends only on domain and protocol definitions (DIP).
Infrastructure implements the interfaces (cache store, repositories, upstream clients).
"""
