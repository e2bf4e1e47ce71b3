"""
Services Module
Business logic for stores, the recce/installation workflow, users,
clients, storage backends and report rendering.

Endpoints stay thin: they resolve the principal and delegate here.
"""
