# armazem/infra/transacao.py
"""
Unidade de trabalho transacional.

Toda operação composta do núcleo (mudança de estado + reserva/liberação de
capacidade + entrada no razão) roda dentro de uma única ``Transacao``:

- modo normal: transação SQLite iniciada com ``BEGIN IMMEDIATE``; qualquer
  exceção desfaz tudo com ROLLBACK;
- modo degradado: quando o substrato transacional não está disponível (ou
  a configuração força ``transacional=False``) e o modo degradado é
  permitido, cada comando é confirmado isoladamente sob um mutex do
  processo e a transação guarda a imagem anterior de cada linha alterada.
  Em caso de falha, as compensações são aplicadas em ordem inversa. Linhas
  já gravadas no razão nunca são apagadas: ficam registradas como
  ``LEDGER_ORPHAN`` no log do sistema.

O modo degradado é sempre logado e detectável: ``Transacao.degradada`` e
``BancoArmazem.ultima_operacao_degradada``.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from armazem.config import ArmazemConfig
from armazem.domain.erros import StorageUnavailableError
from armazem.infra.db import abrir_conexao, connect
from armazem.infra.locks import LOCKS, RegistroLocks
from armazem.infra.logger import log_database_operation, log_modo_degradado, log_system_event


# Serializa operações degradadas do processo (não há transação para isolar)
_MUTEX_DEGRADADO = threading.RLock()


class Transacao:
    """Uma operação composta, atômica no modo normal e compensável no degradado."""

    def __init__(self, db_path: str, config: ArmazemConfig, operacao: str):
        self.db_path = db_path
        self.config = config
        self.operacao = operacao
        self.conn: Optional[sqlite3.Connection] = None
        self.degradada = False
        self.motivo_degradacao: Optional[str] = None
        self._compensacoes: List[Tuple[str, Callable[[sqlite3.Connection], None]]] = []
        self._razao_gravado: List[int] = []
        self._mutex_obtido = False

    # ------------------------------
    # ciclo de vida
    # ------------------------------

    def __enter__(self) -> "Transacao":
        if self.config.transacional:
            conn = abrir_conexao(self.db_path, timeout=self.config.timeout_s, autocommit=True)
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as exc:
                conn.close()
                self._degradar(str(exc))
            else:
                self.conn = conn
        else:
            self._degradar("transacional=False na configuração")
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self._confirmar()
            else:
                self._desfazer(exc)
        finally:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
            if self._mutex_obtido:
                _MUTEX_DEGRADADO.release()
                self._mutex_obtido = False
        return False

    def _degradar(self, motivo: str) -> None:
        if not self.config.permitir_modo_degradado:
            raise StorageUnavailableError(motivo)
        _MUTEX_DEGRADADO.acquire()
        self._mutex_obtido = True
        try:
            self.conn = abrir_conexao(self.db_path, timeout=self.config.timeout_s, autocommit=True)
        except sqlite3.Error as exc:
            _MUTEX_DEGRADADO.release()
            self._mutex_obtido = False
            raise StorageUnavailableError(str(exc)) from exc
        self.degradada = True
        self.motivo_degradacao = motivo
        log_modo_degradado("operacao_sem_atomicidade", {"operacao": self.operacao, "motivo": motivo})

    def _confirmar(self) -> None:
        if self.degradada:
            log_modo_degradado(
                "operacao_concluida",
                {"operacao": self.operacao, "movimentacoes": list(self._razao_gravado)},
                level="info",
            )
            return
        self.conn.execute("COMMIT")
        log_database_operation("transacao", "COMMIT", 0, operacao=self.operacao)

    def _desfazer(self, exc: BaseException) -> None:
        if not self.degradada:
            self.conn.execute("ROLLBACK")
            log_system_event(
                "transacao_desfeita",
                {"operacao": self.operacao, "erro": str(exc)},
                level="warning",
            )
            return
        for descricao, compensar in reversed(self._compensacoes):
            try:
                compensar(self.conn)
            except sqlite3.Error as erro:
                log_modo_degradado(
                    "compensacao_falhou",
                    {"operacao": self.operacao, "passo": descricao, "erro": str(erro)},
                    level="error",
                )
        if self._razao_gravado:
            log_modo_degradado(
                "LEDGER_ORPHAN",
                {"operacao": self.operacao, "movimentacoes": list(self._razao_gravado), "erro": str(exc)},
                level="error",
            )
        log_modo_degradado(
            "operacao_compensada",
            {"operacao": self.operacao, "passos": len(self._compensacoes), "erro": str(exc)},
        )

    # ------------------------------
    # ganchos usados pelos repositórios
    # ------------------------------

    def antes_de_alterar(self, tabela: str, linha_id: int) -> None:
        """Guarda a imagem anterior da linha (apenas no modo degradado)."""
        if not self.degradada:
            return
        row = self.conn.execute(f"SELECT * FROM {tabela} WHERE id = ?", (linha_id,)).fetchone()
        if row is None:
            return
        imagem: Dict[str, Any] = dict(row)

        def restaurar(conn: sqlite3.Connection) -> None:
            cols = [c for c in imagem if c != "id"]
            sets = ", ".join(f"{c} = :{c}" for c in cols)
            conn.execute(f"UPDATE {tabela} SET {sets} WHERE id = :id", imagem)

        self._compensacoes.append((f"restaurar {tabela}#{linha_id}", restaurar))

    def antes_de_apagar(self, tabela: str, linha_id: int) -> None:
        if not self.degradada:
            return
        row = self.conn.execute(f"SELECT * FROM {tabela} WHERE id = ?", (linha_id,)).fetchone()
        if row is None:
            return
        imagem: Dict[str, Any] = dict(row)

        def reinserir(conn: sqlite3.Connection) -> None:
            cols = list(imagem)
            conn.execute(
                f"INSERT INTO {tabela} ({', '.join(cols)}) VALUES ({', '.join(':' + c for c in cols)})",
                imagem,
            )

        self._compensacoes.append((f"reinserir {tabela}#{linha_id}", reinserir))

    def apos_inserir(self, tabela: str, linha_id: int) -> None:
        if not self.degradada:
            return
        if tabela == "movimentacao":
            self._razao_gravado.append(linha_id)
            return

        def apagar(conn: sqlite3.Connection) -> None:
            conn.execute(f"DELETE FROM {tabela} WHERE id = ?", (linha_id,))

        self._compensacoes.append((f"apagar {tabela}#{linha_id}", apagar))


class BancoArmazem:
    """Fábrica de transações e leituras ligada a um banco e a um registro de locks."""

    def __init__(self, config: Optional[ArmazemConfig] = None, locks: Optional[RegistroLocks] = None):
        self.config = config or ArmazemConfig()
        self.locks = locks or LOCKS
        self._estado = threading.local()

    @property
    def db_path(self) -> str:
        return self.config.db_path

    @property
    def ultima_operacao_degradada(self) -> bool:
        """Se a última operação composta desta thread rodou sem atomicidade."""
        return getattr(self._estado, "degradada", False)

    @contextmanager
    def transacao(self, operacao: str) -> Iterator[Transacao]:
        tx = Transacao(self.db_path, self.config, operacao)
        with tx:
            self._estado.degradada = tx.degradada
            yield tx

    @contextmanager
    def unidade(self, tx: Optional[Transacao], operacao: str, *chaves: Any) -> Iterator[Transacao]:
        """Reaproveita ``tx`` de uma operação composta ou abre uma própria (com locks)."""
        if tx is not None:
            yield tx
            return
        with self.locks.adquirir(*chaves):
            with self.transacao(operacao) as nova:
                yield nova

    @contextmanager
    def leitura(self) -> Iterator[sqlite3.Connection]:
        """Conexão somente leitura: enxerga o último snapshot confirmado."""
        with connect(self.db_path, timeout=self.config.timeout_s) as conn:
            yield conn
