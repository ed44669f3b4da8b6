"""Modelos, enums y errores del dominio WebSub.

Por qué:
- Aquí viven las estructuras de datos del protocolo (Pydantic v2) y la
  jerarquía de errores que ven el host y la CLI.
- El dominio no conoce httpx ni FastAPI: solo hubs, topics, firmas y acuses.
"""
