# armazem/infra/db.py
"""
Utilidades de conexão SQLite.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator


def abrir_conexao(db_path: str, timeout: float = 5.0, autocommit: bool = False) -> sqlite3.Connection:
    """
    Abre conexão SQLite com:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - busy timeout (segundos)
    - ``autocommit=True`` desliga as transações implícitas do módulo
      (quem chama controla BEGIN/COMMIT).
    """
    conn = sqlite3.connect(
        db_path,
        timeout=timeout,
        isolation_level=None if autocommit else "",
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def connect(db_path: str, timeout: float = 5.0) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite:
    - commit ao sair (rollback em caso de exceção)
    """
    conn = abrir_conexao(db_path, timeout=timeout)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
