# armazem/usecases/produtos.py
"""
UC: Máquina de estados do produto.

Orquestra cada mudança de status de um lote de sementes junto com a
reserva/liberação de capacidade (``AlocadorLocalizacoes``) e a entrada no
razão (``RazaoMovimentacoes``), tudo dentro de uma única ``Transacao``.

Regras gerais:
- toda transição é conferida na ``TabelaTransicoes`` injetada;
- toda mudança de quantidade ou localização grava exatamente uma
  movimentação por produto afetado;
- a gravação no razão é o último passo: se falhar, nada é persistido.

Transições dirigidas pela retirada (AGUARDANDO_RETIRADA <-> LOCADO /
RETIRADO) ficam em ``_transicionar`` e só são usadas por ``FluxoRetirada``.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from armazem.domain.erros import (
    ArmazemError,
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from armazem.domain.models import (
    Movimentacao,
    Produto,
    StatusProduto,
    TipoMovimentacao,
    peso_total,
)
from armazem.domain.policies import validar_dados_produto, validar_motivo, validar_quantidade
from armazem.domain.transicoes import TABELA_PADRAO, TabelaTransicoes
from armazem.infra.locks import Chave, chave_localizacao, chave_produto
from armazem.infra.logger import log_system_event, log_transaction
from armazem.infra.repositories import ProdutoRepo
from armazem.infra.transacao import BancoArmazem, Transacao
from armazem.usecases.alocador import AlocadorLocalizacoes
from armazem.usecases.razao import RazaoMovimentacoes


def auditado(operacao: str):
    """Loga sucesso/falha da operação no log de transações e repropaga erros."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            dados = {"args": args, **kwargs}
            try:
                resultado = fn(self, *args, **kwargs)
            except ArmazemError as exc:
                log_transaction(operacao, dados, error=f"{exc.code}: {exc}")
                raise
            log_transaction(operacao, dados, result=_resumo(resultado))
            return resultado

        return wrapper

    return decorator


def _resumo(resultado: Any) -> Any:
    if isinstance(resultado, Produto):
        return {"id": resultado.id, "status": resultado.status.value, "quantidade": resultado.quantidade}
    if isinstance(resultado, tuple):
        return [_resumo(r) for r in resultado]
    return getattr(resultado, "id", resultado)


@contextmanager
def travar_produto(
    banco: BancoArmazem, produto_id: int, operacao: str, *extras: Optional[Chave]
) -> Iterator[Tuple[Transacao, Produto]]:
    """Trava produto + localização vinculada (+ extras) e abre a transação.

    A localização só é conhecida após ler o produto: lê fora do lock, trava,
    relê dentro da transação e, se o vínculo mudou nesse intervalo, tenta de
    novo (até ``tentativas_lock`` vezes).
    """
    for tentativa in range(max(1, banco.config.tentativas_lock)):
        with banco.leitura() as conn:
            visto = ProdutoRepo(conn).obter(produto_id)
        if visto is None:
            raise NotFoundError("produto", produto_id)
        chave_loc = chave_localizacao(visto.localizacao_id) if visto.localizacao_id else None
        with banco.locks.adquirir(chave_produto(produto_id), chave_loc, *extras):
            with banco.transacao(operacao) as tx:
                atual = ProdutoRepo(tx.conn, tx).obter(produto_id)
                if atual is not None and atual.localizacao_id == visto.localizacao_id:
                    yield tx, atual
                    return
        log_system_event(
            "lock_vinculo_alterado", {"produto_id": produto_id, "tentativa": tentativa + 1}, level="warning"
        )
    raise ConflictError(
        f"Produto {produto_id} mudou de localização durante a operação", "produto", produto_id
    )


class MaquinaEstadosProduto:
    def __init__(
        self,
        banco: BancoArmazem,
        tabela: TabelaTransicoes = TABELA_PADRAO,
        alocador: Optional[AlocadorLocalizacoes] = None,
        razao: Optional[RazaoMovimentacoes] = None,
    ):
        self.banco = banco
        self.tabela = tabela
        self.alocador = alocador or AlocadorLocalizacoes(banco)
        self.razao = razao or RazaoMovimentacoes(banco)

    # ------------------------------
    # helpers
    # ------------------------------

    def _transicionar(self, tx: Transacao, produto: Produto, alvo: StatusProduto, **campos: Any) -> Produto:
        """Aplica uma transição da tabela (e campos extras) e devolve o produto relido."""
        self.tabela.validar(produto.id, produto.status, alvo)
        if self.tabela.terminal(alvo):
            campos["localizacao_id"] = None
        repo = ProdutoRepo(tx.conn, tx)
        repo.atualizar(produto.id, status=alvo, **campos)
        return repo.obter(produto.id)

    def _exigir_locado(self, produto: Produto) -> None:
        if produto.status == StatusProduto.LOCADO:
            return
        if self.tabela.terminal(produto.status):
            raise InvalidTransitionError(produto.id, produto.status.value, StatusProduto.LOCADO.value)
        raise InvalidStateError("produto", produto.id, produto.status.value, StatusProduto.LOCADO.value)

    def _registrar(self, tx: Transacao, produto: Produto, tipo: TipoMovimentacao, operacao: str,
                   usuario_id: str, motivo: str, quantidade: int, peso: float,
                   origem: Optional[int] = None, destino: Optional[int] = None,
                   antes: Tuple[int, float] = (0, 0.0), depois: Tuple[int, float] = (0, 0.0),
                   observacoes: Optional[str] = None) -> Movimentacao:
        return self.razao.registrar(
            Movimentacao(
                id=None,
                produto_id=produto.id,
                tipo=tipo,
                quantidade=quantidade,
                peso=peso,
                usuario_id=usuario_id,
                motivo=motivo,
                localizacao_origem_id=origem,
                localizacao_destino_id=destino,
                observacoes=observacoes,
                quantidade_anterior=antes[0],
                peso_anterior=antes[1],
                quantidade_posterior=depois[0],
                peso_posterior=depois[1],
                operacao=operacao,
            ),
            tx=tx,
        )

    @staticmethod
    def _usuario(usuario_id: Any) -> str:
        s = str(usuario_id).strip() if usuario_id is not None else ""
        if not s:
            raise ValidationError("usuario_id é obrigatório", campo="usuario_id", valor=usuario_id)
        return s

    # ------------------------------
    # operações
    # ------------------------------

    @auditado("criar")
    def criar(self, dados: Dict[str, Any], usuario_id: str,
              localizacao_id: Optional[int] = None) -> Produto:
        """Cadastra um produto; com localização, já aloca (LOCADO + entry)."""
        usuario_id = self._usuario(usuario_id)
        payload = validar_dados_produto(dados)
        payload["peso_total"] = peso_total(payload["quantidade"], payload["peso_por_unidade"])
        payload["status"] = StatusProduto.CADASTRADO
        payload["criado_por"] = usuario_id

        chave_loc = chave_localizacao(localizacao_id) if localizacao_id is not None else None
        with self.banco.locks.adquirir(chave_loc):
            with self.banco.transacao("criar") as tx:
                repo = ProdutoRepo(tx.conn, tx)
                produto = repo.obter(repo.inserir(payload))
                if localizacao_id is None:
                    return self._transicionar(tx, produto, StatusProduto.AGUARDANDO_LOCACAO)
                return self._alocar_em(tx, produto, localizacao_id, usuario_id, "Entrada inicial", "criar")

    def _alocar_em(self, tx: Transacao, produto: Produto, localizacao_id: int,
                   usuario_id: str, motivo: str, operacao: str) -> Produto:
        self.tabela.validar(produto.id, produto.status, StatusProduto.LOCADO)
        self.alocador.reservar(localizacao_id, produto.peso_total, tx=tx)
        novo = self._transicionar(tx, produto, StatusProduto.LOCADO, localizacao_id=localizacao_id)
        self._registrar(
            tx, novo, TipoMovimentacao.ENTRADA, operacao, usuario_id, motivo,
            novo.quantidade, novo.peso_total,
            destino=localizacao_id,
            antes=(0, 0.0),
            depois=(novo.quantidade, novo.peso_total),
        )
        return novo

    @auditado("alocar")
    def alocar(self, produto_id: int, localizacao_id: int, usuario_id: str,
               motivo: str = "Alocação de produto") -> Produto:
        usuario_id = self._usuario(usuario_id)
        motivo = validar_motivo(motivo)
        with travar_produto(self.banco, produto_id, "alocar", chave_localizacao(localizacao_id)) as (tx, produto):
            return self._alocar_em(tx, produto, localizacao_id, usuario_id, motivo, "alocar")

    @auditado("mover")
    def mover(self, produto_id: int, nova_localizacao_id: int, usuario_id: str, motivo: str) -> Produto:
        """Transfere o produto inteiro para outra localização (continua LOCADO)."""
        usuario_id = self._usuario(usuario_id)
        motivo = validar_motivo(motivo)
        with travar_produto(self.banco, produto_id, "mover", chave_localizacao(nova_localizacao_id)) as (tx, produto):
            self._exigir_locado(produto)
            origem = produto.localizacao_id
            if origem == nova_localizacao_id:
                raise ValidationError(
                    "produto já está nesta localização", campo="nova_localizacao_id", valor=nova_localizacao_id
                )
            self.alocador.liberar(origem, tx=tx)
            self.alocador.reservar(nova_localizacao_id, produto.peso_total, tx=tx)
            repo = ProdutoRepo(tx.conn, tx)
            repo.atualizar(produto.id, localizacao_id=nova_localizacao_id)
            novo = repo.obter(produto.id)
            self._registrar(
                tx, novo, TipoMovimentacao.TRANSFERENCIA, "mover", usuario_id, motivo,
                novo.quantidade, novo.peso_total,
                origem=origem, destino=nova_localizacao_id,
                antes=(produto.quantidade, produto.peso_total),
                depois=(novo.quantidade, novo.peso_total),
            )
            return novo

    @auditado("mover_parcial")
    def mover_parcial(self, produto_id: int, quantidade: int, nova_localizacao_id: int,
                      usuario_id: str, motivo: str) -> Tuple[Produto, Produto]:
        """Separa ``quantidade`` unidades num novo produto na nova localização.

        Retorna ``(original, novo)``.
        """
        usuario_id = self._usuario(usuario_id)
        motivo = validar_motivo(motivo)
        quantidade = validar_quantidade(quantidade)
        with travar_produto(
            self.banco, produto_id, "mover_parcial", chave_localizacao(nova_localizacao_id)
        ) as (tx, produto):
            self._exigir_locado(produto)
            if quantidade >= produto.quantidade:
                raise ValidationError(
                    "para mover a quantidade total use mover()", campo="quantidade", valor=quantidade
                )
            origem = produto.localizacao_id
            if origem == nova_localizacao_id:
                raise ValidationError(
                    "produto já está nesta localização", campo="nova_localizacao_id", valor=nova_localizacao_id
                )
            restante = produto.quantidade - quantidade
            peso_restante = peso_total(restante, produto.peso_por_unidade)
            peso_movido = peso_total(quantidade, produto.peso_por_unidade)

            self.alocador.ajustar_peso(origem, peso_restante - produto.peso_total, tx=tx)
            repo = ProdutoRepo(tx.conn, tx)
            repo.atualizar(produto.id, quantidade=restante, peso_total=peso_restante)
            original = repo.obter(produto.id)

            novo_id = repo.inserir(
                {
                    "nome": produto.nome,
                    "lote": produto.lote,
                    "tipo_semente": produto.tipo_semente,
                    "quantidade": quantidade,
                    "tipo_armazenamento": produto.tipo_armazenamento,
                    "peso_por_unidade": produto.peso_por_unidade,
                    "peso_total": peso_movido,
                    "cliente_id": produto.cliente_id,
                    "data_entrada": produto.data_entrada,
                    "data_validade": produto.data_validade,
                    "status": StatusProduto.CADASTRADO,
                    "observacoes": produto.observacoes,
                    "produto_origem_id": produto.id,
                    "criado_por": usuario_id,
                }
            )
            novo = repo.obter(novo_id)
            self.tabela.validar(novo.id, novo.status, StatusProduto.LOCADO)
            self.alocador.reservar(nova_localizacao_id, peso_movido, tx=tx)
            novo = self._transicionar(tx, novo, StatusProduto.LOCADO, localizacao_id=nova_localizacao_id)

            self._registrar(
                tx, original, TipoMovimentacao.TRANSFERENCIA, "mover_parcial", usuario_id, motivo,
                quantidade, peso_movido,
                origem=origem, destino=nova_localizacao_id,
                antes=(produto.quantidade, produto.peso_total),
                depois=(original.quantidade, original.peso_total),
                observacoes=f"Separado no produto {novo.id}",
            )
            self._registrar(
                tx, novo, TipoMovimentacao.ENTRADA, "mover_parcial", usuario_id, motivo,
                quantidade, peso_movido,
                destino=nova_localizacao_id,
                antes=(0, 0.0),
                depois=(novo.quantidade, novo.peso_total),
                observacoes=f"Originado do produto {produto.id}",
            )
            return original, novo

    @auditado("saida_parcial")
    def saida_parcial(self, produto_id: int, quantidade: int, usuario_id: str, motivo: str) -> Produto:
        """Reduz a quantidade; ao chegar a zero libera a localização e vai para REMOVIDO."""
        usuario_id = self._usuario(usuario_id)
        motivo = validar_motivo(motivo)
        quantidade = validar_quantidade(quantidade)
        with travar_produto(self.banco, produto_id, "saida_parcial") as (tx, produto):
            self._exigir_locado(produto)
            if quantidade > produto.quantidade:
                raise ValidationError(
                    f"quantidade excede o estoque do produto ({produto.quantidade})",
                    campo="quantidade",
                    valor=quantidade,
                )
            origem = produto.localizacao_id
            restante = produto.quantidade - quantidade
            peso_restante = peso_total(restante, produto.peso_por_unidade)

            if restante == 0:
                self.alocador.liberar(origem, tx=tx)
                novo = self._transicionar(tx, produto, StatusProduto.REMOVIDO)
            else:
                self.alocador.ajustar_peso(origem, peso_restante - produto.peso_total, tx=tx)
                repo = ProdutoRepo(tx.conn, tx)
                repo.atualizar(produto.id, quantidade=restante, peso_total=peso_restante)
                novo = repo.obter(produto.id)

            self._registrar(
                tx, novo, TipoMovimentacao.SAIDA, "saida_parcial", usuario_id, motivo,
                quantidade, round(produto.peso_total - peso_restante, 3),
                origem=origem,
                antes=(produto.quantidade, produto.peso_total),
                depois=(restante, peso_restante),
            )
            return novo

    @auditado("adicionar_estoque")
    def adicionar_estoque(self, produto_id: int, quantidade: int, usuario_id: str, motivo: str) -> Produto:
        usuario_id = self._usuario(usuario_id)
        motivo = validar_motivo(motivo)
        quantidade = validar_quantidade(quantidade)
        with travar_produto(self.banco, produto_id, "adicionar_estoque") as (tx, produto):
            self._exigir_locado(produto)
            total = produto.quantidade + quantidade
            novo_peso = peso_total(total, produto.peso_por_unidade)
            self.alocador.ajustar_peso(produto.localizacao_id, novo_peso - produto.peso_total, tx=tx)
            repo = ProdutoRepo(tx.conn, tx)
            repo.atualizar(produto.id, quantidade=total, peso_total=novo_peso)
            novo = repo.obter(produto.id)
            self._registrar(
                tx, novo, TipoMovimentacao.AJUSTE, "adicionar_estoque", usuario_id, motivo,
                quantidade, round(novo_peso - produto.peso_total, 3),
                destino=produto.localizacao_id,
                antes=(produto.quantidade, produto.peso_total),
                depois=(novo.quantidade, novo.peso_total),
            )
            return novo

    @auditado("remover")
    def remover(self, produto_id: int, usuario_id: str, motivo: str) -> Produto:
        """Remoção lógica (REMOVIDO, irreversível).

        Produto vinculado: libera a localização e grava ``exit``. Produto sem
        localização não muda quantidade nem posição: nenhuma movimentação, o
        motivo fica em ``observacoes``.
        """
        usuario_id = self._usuario(usuario_id)
        motivo = validar_motivo(motivo)
        with travar_produto(self.banco, produto_id, "remover") as (tx, produto):
            if produto.status == StatusProduto.CADASTRADO:
                # CADASTRADO só alcança REMOVIDO passando por AGUARDANDO_LOCACAO
                produto = self._transicionar(tx, produto, StatusProduto.AGUARDANDO_LOCACAO)
            self.tabela.validar(produto.id, produto.status, StatusProduto.REMOVIDO)
            origem = produto.localizacao_id
            if origem is None:
                obs = f"Removido: {motivo}"
                if produto.observacoes:
                    obs = f"{produto.observacoes}\n{obs}"
                return self._transicionar(tx, produto, StatusProduto.REMOVIDO, observacoes=obs)

            self.alocador.liberar(origem, tx=tx)
            novo = self._transicionar(tx, produto, StatusProduto.REMOVIDO)
            self._registrar(
                tx, novo, TipoMovimentacao.SAIDA, "remover", usuario_id, motivo,
                produto.quantidade, produto.peso_total,
                origem=origem,
                antes=(produto.quantidade, produto.peso_total),
                depois=(0, 0.0),
            )
            return novo

    # ------------------------------
    # consultas
    # ------------------------------

    def obter(self, produto_id: int) -> Produto:
        with self.banco.leitura() as conn:
            produto = ProdutoRepo(conn).obter(produto_id)
        if produto is None:
            raise NotFoundError("produto", produto_id)
        return produto

    def listar(self, status: Optional[Sequence[StatusProduto]] = None,
               localizacao_id: Optional[int] = None,
               camara_id: Optional[int] = None) -> List[Produto]:
        if isinstance(status, (str, StatusProduto)):
            status = [status]
        status = [StatusProduto(s) for s in status] if status else None
        with self.banco.leitura() as conn:
            return ProdutoRepo(conn).listar(status, localizacao_id, camara_id)
