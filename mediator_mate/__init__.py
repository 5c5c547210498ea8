"""
MediatorMate Service - Case Data Layer and Chat Assistant
=========================================================

Backend for a mediation practice dashboard:
1. Local record store for matters, contacts, tasks, notes, documents and more
2. Form validation and feature contexts over that store
3. A chat assistant that answers from the stored case data

No auth, no multi-user sync.
"""

__version__ = "1.0.0"
