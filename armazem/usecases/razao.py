# armazem/usecases/razao.py
"""
UC: Razão de movimentações (append-only).

- registrar(): valida e grava uma entrada, atribuindo timestamp (UTC) e a
  próxima sequência do produto. É sempre o último passo de uma operação
  composta: se falhar, a transação inteira é desfeita.
- por_produto() / por_localizacao(): histórico ordenado
  (timestamp, sequencia, id) como ``Historico`` reiniciável.
- listar(): filtros por período, tipo e usuário (relatórios).

Linhas do razão nunca são alteradas nem apagadas; o schema tem gatilhos
que abortam UPDATE/DELETE.
"""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from armazem.domain.erros import ConflictError, ImmutableRecordError, NotFoundError, ValidationError
from armazem.domain.models import Movimentacao, TipoMovimentacao
from armazem.domain.policies import validar_motivo
from armazem.infra.locks import chave_produto
from armazem.infra.logger import log_movimentacao
from armazem.infra.repositories import (
    LocalizacaoRepo,
    MovimentacaoRepo,
    ProdutoRepo,
    agora_iso,
)
from armazem.infra.transacao import BancoArmazem, Transacao


# tipo -> (exige origem, exige destino)
_LOCAIS_POR_TIPO = {
    TipoMovimentacao.TRANSFERENCIA: (True, True),
    TipoMovimentacao.ENTRADA: (False, True),
    TipoMovimentacao.AJUSTE: (False, True),
    TipoMovimentacao.SAIDA: (True, False),
}


class Historico:
    """Sequência finita e reiniciável: cada iteração relê o snapshot confirmado."""

    def __init__(self, carregar: Callable[[], List[Movimentacao]]):
        self._carregar = carregar

    def __iter__(self) -> Iterator[Movimentacao]:
        return iter(self._carregar())

    def __len__(self) -> int:
        return len(self._carregar())

    def lista(self) -> List[Movimentacao]:
        return self._carregar()


def _validar_locais(mov: Movimentacao) -> None:
    exige_origem, exige_destino = _LOCAIS_POR_TIPO[mov.tipo]
    origem, destino = mov.localizacao_origem_id, mov.localizacao_destino_id
    if exige_origem and origem is None:
        raise ValidationError(f"movimentação {mov.tipo.value} exige origem", campo="localizacao_origem_id")
    if not exige_origem and origem is not None:
        raise ValidationError(
            f"movimentação {mov.tipo.value} não aceita origem", campo="localizacao_origem_id", valor=origem
        )
    if exige_destino and destino is None:
        raise ValidationError(f"movimentação {mov.tipo.value} exige destino", campo="localizacao_destino_id")
    if not exige_destino and destino is not None:
        raise ValidationError(
            f"movimentação {mov.tipo.value} não aceita destino", campo="localizacao_destino_id", valor=destino
        )
    if origem is not None and origem == destino:
        raise ValidationError("origem e destino devem ser diferentes", campo="localizacao_destino_id", valor=destino)


class RazaoMovimentacoes:
    def __init__(self, banco: BancoArmazem):
        self.banco = banco

    def registrar(self, entrada: Union[Movimentacao, Dict[str, Any]],
                  tx: Optional[Transacao] = None) -> Movimentacao:
        """Acrescenta uma entrada ao razão e devolve-a com id, timestamp e sequência."""
        mov = entrada if isinstance(entrada, Movimentacao) else Movimentacao(id=None, **entrada)
        try:
            tipo = TipoMovimentacao(mov.tipo)
        except ValueError:
            raise ValidationError("tipo de movimentação inválido", campo="tipo", valor=mov.tipo) from None
        mov = replace(mov, tipo=tipo, motivo=validar_motivo(mov.motivo))
        if isinstance(mov.quantidade, bool) or not isinstance(mov.quantidade, int) or mov.quantidade < 0:
            raise ValidationError("quantidade deve ser inteiro >= 0", campo="quantidade", valor=mov.quantidade)
        if mov.peso is None or float(mov.peso) < 0:
            raise ValidationError("peso deve ser >= 0", campo="peso", valor=mov.peso)
        if not str(mov.usuario_id or "").strip():
            raise ValidationError("usuario_id é obrigatório", campo="usuario_id", valor=mov.usuario_id)
        _validar_locais(mov)

        with self.banco.unidade(tx, "registrar_movimentacao", chave_produto(mov.produto_id)) as t:
            if ProdutoRepo(t.conn).obter(mov.produto_id) is None:
                raise NotFoundError("produto", mov.produto_id)
            locs = LocalizacaoRepo(t.conn)
            for loc_id in (mov.localizacao_origem_id, mov.localizacao_destino_id):
                if loc_id is not None and locs.obter(loc_id) is None:
                    raise NotFoundError("localizacao", loc_id)

            repo = MovimentacaoRepo(t.conn, t)
            mov = replace(
                mov,
                peso=round(float(mov.peso), 3),
                timestamp=agora_iso(),
                sequencia=repo.proxima_sequencia(mov.produto_id),
            )
            try:
                novo_id = repo.inserir(mov)
            except sqlite3.IntegrityError as exc:
                if "imutavel" in str(exc):
                    raise ImmutableRecordError("movimentacao") from exc
                raise ConflictError(
                    f"sequência {mov.sequencia} já usada no razão", "produto", mov.produto_id
                ) from exc
            mov = replace(mov, id=novo_id)

        log_movimentacao(
            mov.tipo.value,
            mov.produto_id,
            mov.quantidade,
            mov.sequencia,
            operacao=mov.operacao,
            origem=mov.localizacao_origem_id,
            destino=mov.localizacao_destino_id,
            usuario_id=mov.usuario_id,
        )
        return mov

    # ------------------------------
    # consultas
    # ------------------------------

    def _consulta(self, fn: Callable[[MovimentacaoRepo], List[Movimentacao]]) -> List[Movimentacao]:
        with self.banco.leitura() as conn:
            return fn(MovimentacaoRepo(conn))

    def por_produto(self, produto_id: int) -> Historico:
        return Historico(lambda: self._consulta(lambda r: r.por_produto(produto_id)))

    def por_localizacao(self, localizacao_id: int) -> Historico:
        return Historico(lambda: self._consulta(lambda r: r.por_localizacao(localizacao_id)))

    def listar(self, inicio: Optional[str] = None, fim: Optional[str] = None,
               tipo: Optional[TipoMovimentacao] = None,
               usuario_id: Optional[str] = None) -> List[Movimentacao]:
        return self._consulta(lambda r: r.listar(inicio, fim, tipo, usuario_id))

    def obter(self, movimentacao_id: int) -> Movimentacao:
        mov = self._consulta(lambda r: [m for m in [r.obter(movimentacao_id)] if m is not None])
        if not mov:
            raise NotFoundError("movimentacao", movimentacao_id)
        return mov[0]

    def alterar(self, movimentacao_id: int, **campos: Any) -> None:
        """O razão não aceita alterações: sempre levanta ImmutableRecordError."""
        raise ImmutableRecordError("movimentacao")

    def apagar(self, movimentacao_id: int) -> None:
        raise ImmutableRecordError("movimentacao")
