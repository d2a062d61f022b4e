"""
Provider layer for swappable implementations.

Each provider type has an abstract interface that concrete implementations
must satisfy. Implementations are selected at runtime based on configuration.

Directory Structure:
    providers/
    ├── __init__.py            # This file
    ├── firestore.py           # Shared Firestore AsyncClient
    ├── ai/                    # AI capability providers
    │   ├── __init__.py        # Factory - builds every provider
    │   ├── interface.py       # Capability enum + one interface per capability
    │   ├── groq_impl.py       # Groq (chat, vision, speech-to-text)
    │   ├── gemini_impl.py     # Gemini (chat, embedding, vision)
    │   └── test_impl.py       # Sentinel provider
    ├── model_config/          # Per-user defaults + capability enablement
    │   ├── __init__.py        # Factory - selects provider
    │   ├── interface.py
    │   ├── firestore_impl.py
    │   └── static_impl.py
    └── vector_store/          # Similarity-search primitive
        ├── __init__.py        # Factory - selects provider
        ├── interface.py
        ├── firestore_impl.py
        └── memory_impl.py
"""

__all__ = []
