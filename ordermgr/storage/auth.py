# ordermgr/storage/auth.py
"""
Proveedores de credenciales para cada conexion nueva del pool.

En una BD administrada la contrasena es un token de corta duracion emitido
por el proveedor cloud; por eso se pide uno nuevo en cada conexion fisica
en lugar de fijarlo al crear el engine.
"""
from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Callable

from ordermgr.core.errors import TransientConnectionError

log = logging.getLogger(__name__)

TokenProvider = Callable[[], str]


class CommandTokenProvider:
    """Ejecuta un comando externo y usa su stdout como contrasena."""

    def __init__(self, command: str, timeout: float = 10.0):
        self.command = command
        self.timeout = timeout

    def __call__(self) -> str:
        try:
            completed = subprocess.run(
                shlex.split(self.command),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as err:
            log.error(f"No se pudo generar el token de la BD: {err}")
            raise TransientConnectionError("Could not obtain database credentials") from err

        token = completed.stdout.strip()
        if not token:
            log.error("El comando de token no devolvio nada.")
            raise TransientConnectionError("Could not obtain database credentials")
        log.info("Token de BD generado correctamente.")
        return token
