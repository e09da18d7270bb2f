# armazem/infra/locks.py
"""
Serialização por agregado.

Cada agregado mutável (produto, localização, solicitação) tem seu próprio
``threading.Lock``. Uma operação declara o conjunto completo de chaves que
vai tocar e ``RegistroLocks.adquirir`` as obtém de uma vez, sempre na
ordem global (tipo, id). Dois ``mover`` em sentidos opostos entre as
mesmas localizações, portanto, nunca se bloqueiam mutuamente.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

Chave = Tuple[str, int]


def chave_produto(produto_id: int) -> Chave:
    return ("produto", int(produto_id))


def chave_localizacao(localizacao_id: int) -> Chave:
    return ("localizacao", int(localizacao_id))


def chave_solicitacao(solicitacao_id: int) -> Chave:
    return ("solicitacao", int(solicitacao_id))


class RegistroLocks:
    """Registro de locks por chave de agregado, compartilhado pelo processo.

    Cada entrada conta quem segura ou espera o lock; ao chegar a zero a
    entrada sai do registro, que só guarda as chaves em uso.
    """

    def __init__(self) -> None:
        self._guarda = threading.Lock()
        self._locks: Dict[Chave, List] = {}

    def em_uso(self) -> int:
        """Quantidade de chaves com lock seguro ou aguardado."""
        with self._guarda:
            return len(self._locks)

    def _reservar(self, chave: Chave) -> threading.Lock:
        with self._guarda:
            entrada = self._locks.get(chave)
            if entrada is None:
                entrada = self._locks[chave] = [threading.Lock(), 0]
            entrada[1] += 1
            return entrada[0]

    def _devolver(self, chave: Chave) -> None:
        with self._guarda:
            entrada = self._locks[chave]
            entrada[1] -= 1
            if entrada[1] == 0:
                del self._locks[chave]

    @staticmethod
    def ordenar(chaves: Iterable[Optional[Chave]]) -> List[Chave]:
        return sorted({c for c in chaves if c is not None})

    @contextmanager
    def adquirir(self, *chaves: Optional[Chave]) -> Iterator[List[Chave]]:
        """Obtém todos os locks na ordem global; libera na ordem inversa."""
        ordem = self.ordenar(chaves)
        reservadas: List[Chave] = []
        obtidos: List[threading.Lock] = []
        try:
            for chave in ordem:
                lock = self._reservar(chave)
                reservadas.append(chave)
                lock.acquire()
                obtidos.append(lock)
            yield ordem
        finally:
            for lock in reversed(obtidos):
                lock.release()
            for chave in reservadas:
                self._devolver(chave)


# Registro padrão do processo
LOCKS = RegistroLocks()
