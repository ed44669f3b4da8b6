"""Contratos (Protocol) entre el Core y el código del usuario.

Por qué:
- El handler de callback depende de `SubscriberService`, no de una clase
  concreta: el usuario aporta la lógica de negocio.
"""
