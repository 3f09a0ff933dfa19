# varejo/infra/db.py
"""
Utilidades de conexão SQLite.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator


# Valores monetários são gravados como TEXT ("1234.50") para não perder centavos
sqlite3.register_adapter(Decimal, str)

BUSY_TIMEOUT_MS = 5000


@contextmanager
def connect(db_path: str, imediato: bool = False) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite com:
    - foreign_keys ON e busy_timeout
    - row_factory = sqlite3.Row
    - commit ao sair (rollback em caso de exceção)

    Com `imediato=True` a transação abre com BEGIN IMMEDIATE, tomando o
    lock de escrita antes da primeira leitura. Use para reservas e fluxos
    que leem e depois gravam (ler-validar-gravar sem corrida).
    """
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_MS / 1000)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS};")
        if imediato:
            conn.execute("BEGIN IMMEDIATE;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
