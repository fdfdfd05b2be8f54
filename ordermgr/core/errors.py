# ordermgr/core/errors.py
"""
Taxonomia de errores del servicio de ordenes.

Cada error lleva un `kind` legible por maquina y el codigo HTTP con el que
se expone. Los mensajes publicos nunca incluyen SQL ni trazas.
"""
from __future__ import annotations

from typing import Optional


class OrderServiceError(Exception):
    kind = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        body = {"kind": self.kind, "message": self.message}
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(OrderServiceError):
    """Campo requerido ausente o invalido. Se detecta antes de tocar la BD."""

    kind = "validation_error"
    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["field"] = self.field
        return body


class NotFoundError(OrderServiceError):
    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        label = resource.capitalize()
        super().__init__(f"{label} not found" if resource_id is None else f"{label} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class PersistenceError(OrderServiceError):
    """La BD rechazo una sentencia. La transaccion ya fue revertida."""

    kind = "persistence_error"
    status_code = 500

    def __init__(self, message: str = "Failed to persist changes"):
        super().__init__(message)


class TransientConnectionError(OrderServiceError):
    """Pool agotado, fallo de conexion o de token. El cliente puede reintentar."""

    kind = "transient_connection_error"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Database temporarily unavailable"):
        super().__init__(message)
