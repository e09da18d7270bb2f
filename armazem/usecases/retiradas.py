# armazem/usecases/retiradas.py
"""
UC: Fluxo de retirada em dois atores (solicitante -> confirmador).

PENDENTE -> CONFIRMADO | CANCELADO (terminais).

- solicitar: produto LOCADO -> AGUARDANDO_RETIRADA (sem movimentação)
- confirmar: TOTAL -> produto RETIRADO, localização liberada, 1 ``exit``;
             PARCIAL -> quantidade reduzida, produto volta a LOCADO, 1 ``exit``
- cancelar:  produto volta a LOCADO, localização intacta, sem movimentação

A separação de papéis é responsabilidade de quem chama (ver
``armazem.domain.policies.pode``).
"""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from armazem.domain.erros import ConflictError, InvalidStateError, NotFoundError, ValidationError
from armazem.domain.models import (
    SolicitacaoRetirada,
    StatusProduto,
    StatusRetirada,
    TipoMovimentacao,
    TipoRetirada,
    peso_total,
)
from armazem.infra.locks import chave_solicitacao
from armazem.infra.repositories import ProdutoRepo, SolicitacaoRepo, agora_iso
from armazem.infra.transacao import BancoArmazem, Transacao
from armazem.usecases.produtos import MaquinaEstadosProduto, auditado, travar_produto


class FluxoRetirada:
    def __init__(self, banco: BancoArmazem, maquina: Optional[MaquinaEstadosProduto] = None):
        self.banco = banco
        self.maquina = maquina or MaquinaEstadosProduto(banco)

    @staticmethod
    def _pendente(tx: Transacao, solicitacao_id: int) -> SolicitacaoRetirada:
        sol = SolicitacaoRepo(tx.conn, tx).obter(solicitacao_id)
        if sol is None:
            raise NotFoundError("solicitacao_retirada", solicitacao_id)
        if sol.status != StatusRetirada.PENDENTE:
            raise InvalidStateError(
                "solicitacao_retirada", solicitacao_id, sol.status.value, StatusRetirada.PENDENTE.value
            )
        return sol

    @auditado("solicitar_retirada")
    def solicitar(self, produto_id: int, tipo: TipoRetirada, quantidade: Optional[int],
                  solicitante: str, motivo: Optional[str] = None,
                  observacoes: Optional[str] = None) -> SolicitacaoRetirada:
        try:
            tipo = TipoRetirada(str(getattr(tipo, "value", tipo)).upper())
        except ValueError:
            raise ValidationError("tipo deve ser TOTAL ou PARCIAL", campo="tipo", valor=tipo) from None
        solicitante = self.maquina._usuario(solicitante)

        with travar_produto(self.banco, produto_id, "solicitar_retirada") as (tx, produto):
            repo = SolicitacaoRepo(tx.conn, tx)
            if repo.pendente_do_produto(produto_id) is not None:
                raise ConflictError(
                    f"Produto {produto_id} já possui solicitação de retirada pendente", "produto", produto_id
                )
            if produto.status != StatusProduto.LOCADO:
                raise InvalidStateError("produto", produto_id, produto.status.value, StatusProduto.LOCADO.value)

            if tipo == TipoRetirada.TOTAL:
                if quantidade is not None and quantidade != produto.quantidade:
                    raise ValidationError(
                        "retirada TOTAL usa a quantidade inteira do produto", campo="quantidade", valor=quantidade
                    )
                quantidade = produto.quantidade
            elif (isinstance(quantidade, bool) or not isinstance(quantidade, int)
                  or not 0 < quantidade < produto.quantidade):
                raise ValidationError(
                    f"retirada PARCIAL exige 0 < quantidade < {produto.quantidade}",
                    campo="quantidade",
                    valor=quantidade,
                )

            try:
                sol_id = repo.inserir(
                    SolicitacaoRetirada(
                        id=None,
                        produto_id=produto_id,
                        tipo=tipo,
                        quantidade_solicitada=quantidade,
                        solicitado_por=solicitante,
                        motivo=motivo,
                        observacoes=observacoes,
                    )
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(
                    f"Produto {produto_id} já possui solicitação de retirada pendente", "produto", produto_id
                ) from exc
            self.maquina._transicionar(tx, produto, StatusProduto.AGUARDANDO_RETIRADA)
            return repo.obter(sol_id)

    @auditado("confirmar_retirada")
    def confirmar(self, solicitacao_id: int, confirmador: str,
                  observacoes: Optional[str] = None) -> SolicitacaoRetirada:
        confirmador = self.maquina._usuario(confirmador)
        sol = self.obter(solicitacao_id)
        with travar_produto(
            self.banco, sol.produto_id, "confirmar_retirada", chave_solicitacao(solicitacao_id)
        ) as (tx, produto):
            sol = self._pendente(tx, solicitacao_id)
            origem = produto.localizacao_id
            motivo = sol.motivo or f"Retirada {sol.tipo.value} confirmada"

            if sol.tipo == TipoRetirada.TOTAL:
                self.maquina.tabela.validar(produto.id, produto.status, StatusProduto.RETIRADO)
                self.maquina.alocador.liberar(origem, tx=tx)
                novo = self.maquina._transicionar(tx, produto, StatusProduto.RETIRADO)
                quantidade, peso = produto.quantidade, produto.peso_total
                depois = (0, 0.0)
            else:
                self.maquina.tabela.validar(produto.id, produto.status, StatusProduto.LOCADO)
                quantidade = sol.quantidade_solicitada
                if quantidade >= produto.quantidade:
                    raise ValidationError(
                        "quantidade solicitada não é mais menor que o estoque do produto",
                        campo="quantidade_solicitada",
                        valor=quantidade,
                    )
                restante = produto.quantidade - quantidade
                peso_restante = peso_total(restante, produto.peso_por_unidade)
                peso = round(produto.peso_total - peso_restante, 3)
                self.maquina.alocador.ajustar_peso(origem, -peso, tx=tx)
                ProdutoRepo(tx.conn, tx).atualizar(produto.id, quantidade=restante, peso_total=peso_restante)
                novo = self.maquina._transicionar(
                    tx, ProdutoRepo(tx.conn, tx).obter(produto.id), StatusProduto.LOCADO
                )
                depois = (novo.quantidade, novo.peso_total)

            repo = SolicitacaoRepo(tx.conn, tx)
            repo.atualizar(
                solicitacao_id,
                status=StatusRetirada.CONFIRMADO,
                confirmado_por=confirmador,
                confirmado_em=agora_iso(),
                observacoes=observacoes if observacoes is not None else sol.observacoes,
            )
            self.maquina._registrar(
                tx, novo, TipoMovimentacao.SAIDA, "confirmar_retirada", confirmador, motivo,
                quantidade, peso,
                origem=origem,
                antes=(produto.quantidade, produto.peso_total),
                depois=depois,
                observacoes=f"Solicitação {solicitacao_id} ({sol.tipo.value}) de {sol.solicitado_por}",
            )
            return repo.obter(solicitacao_id)

    @auditado("cancelar_retirada")
    def cancelar(self, solicitacao_id: int, cancelador: str,
                 motivo: Optional[str] = None) -> SolicitacaoRetirada:
        cancelador = self.maquina._usuario(cancelador)
        sol = self.obter(solicitacao_id)
        with travar_produto(
            self.banco, sol.produto_id, "cancelar_retirada", chave_solicitacao(solicitacao_id)
        ) as (tx, produto):
            sol = self._pendente(tx, solicitacao_id)
            self.maquina._transicionar(tx, produto, StatusProduto.LOCADO)
            obs = sol.observacoes
            if motivo:
                obs = f"{obs}\nCancelado: {motivo}" if obs else f"Cancelado: {motivo}"
            repo = SolicitacaoRepo(tx.conn, tx)
            repo.atualizar(
                solicitacao_id,
                status=StatusRetirada.CANCELADO,
                cancelado_por=cancelador,
                cancelado_em=agora_iso(),
                observacoes=obs,
            )
            return repo.obter(solicitacao_id)

    # ------------------------------
    # consultas
    # ------------------------------

    def obter(self, solicitacao_id: int) -> SolicitacaoRetirada:
        with self.banco.leitura() as conn:
            sol = SolicitacaoRepo(conn).obter(solicitacao_id)
        if sol is None:
            raise NotFoundError("solicitacao_retirada", solicitacao_id)
        return sol

    def pendentes(self) -> List[SolicitacaoRetirada]:
        with self.banco.leitura() as conn:
            return SolicitacaoRepo(conn).listar(status=StatusRetirada.PENDENTE)

    def por_produto(self, produto_id: int) -> List[SolicitacaoRetirada]:
        with self.banco.leitura() as conn:
            return SolicitacaoRepo(conn).listar(produto_id=produto_id)
