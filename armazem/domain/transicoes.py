# armazem/domain/transicoes.py
"""
Tabela de transições de status do produto.

A tabela é um dado estático do processo: é carregada uma vez
(``carregar_tabela``) e injetada na máquina de estados. Nenhuma operação
consulta globais ad hoc; quem precisar de outra tabela (testes, por
exemplo) constrói uma ``TabelaTransicoes`` e a injeta.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, Mapping, Tuple

from .erros import InvalidTransitionError
from .models import StatusProduto


_TRANSICOES: Tuple[Tuple[StatusProduto, Tuple[StatusProduto, ...]], ...] = (
    (StatusProduto.CADASTRADO, (StatusProduto.AGUARDANDO_LOCACAO, StatusProduto.LOCADO)),
    (StatusProduto.AGUARDANDO_LOCACAO, (StatusProduto.LOCADO, StatusProduto.REMOVIDO)),
    (StatusProduto.LOCADO, (StatusProduto.AGUARDANDO_RETIRADA, StatusProduto.REMOVIDO)),
    # inclui o cancelamento (volta para LOCADO)
    (StatusProduto.AGUARDANDO_RETIRADA, (StatusProduto.RETIRADO, StatusProduto.LOCADO)),
    (StatusProduto.RETIRADO, ()),
    (StatusProduto.REMOVIDO, ()),
)


class TabelaTransicoes:
    """Mapa imutável status -> destinos permitidos."""

    def __init__(self, pares: Iterable[Tuple[StatusProduto, Iterable[StatusProduto]]]):
        self._mapa: Mapping[StatusProduto, FrozenSet[StatusProduto]] = MappingProxyType(
            {StatusProduto(origem): frozenset(StatusProduto(d) for d in destinos)
             for origem, destinos in pares}
        )

    def permitidos(self, atual: StatusProduto) -> FrozenSet[StatusProduto]:
        return self._mapa.get(StatusProduto(atual), frozenset())

    def permite(self, atual: StatusProduto, alvo: StatusProduto) -> bool:
        return StatusProduto(alvo) in self.permitidos(atual)

    def terminal(self, status: StatusProduto) -> bool:
        return not self.permitidos(status)

    def validar(self, produto_id: Any, atual: StatusProduto, alvo: StatusProduto) -> StatusProduto:
        """Retorna ``alvo`` se a transição é permitida; senão levanta InvalidTransitionError."""
        if not self.permite(atual, alvo):
            raise InvalidTransitionError(
                produto_id, StatusProduto(atual).value, StatusProduto(alvo).value
            )
        return StatusProduto(alvo)


def carregar_tabela() -> TabelaTransicoes:
    return TabelaTransicoes(_TRANSICOES)


TABELA_PADRAO = carregar_tabela()
