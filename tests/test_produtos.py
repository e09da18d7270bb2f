import pytest

from armazem.domain.erros import (
    CapacityError,
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from armazem.domain.models import StatusProduto, TipoArmazenamento, TipoMovimentacao
from armazem.domain.transicoes import TABELA_PADRAO, TabelaTransicoes
from armazem.infra.repositories import ProdutoRepo

from conftest import dados_produto


# ---------------------------
# tabela de transições
# ---------------------------

@pytest.mark.parametrize(
    "atual,alvo,permitido",
    [
        (StatusProduto.CADASTRADO, StatusProduto.AGUARDANDO_LOCACAO, True),
        (StatusProduto.CADASTRADO, StatusProduto.LOCADO, True),
        (StatusProduto.CADASTRADO, StatusProduto.RETIRADO, False),
        (StatusProduto.AGUARDANDO_LOCACAO, StatusProduto.REMOVIDO, True),
        (StatusProduto.LOCADO, StatusProduto.AGUARDANDO_RETIRADA, True),
        (StatusProduto.LOCADO, StatusProduto.RETIRADO, False),
        (StatusProduto.AGUARDANDO_RETIRADA, StatusProduto.LOCADO, True),
        (StatusProduto.AGUARDANDO_RETIRADA, StatusProduto.REMOVIDO, False),
        (StatusProduto.RETIRADO, StatusProduto.LOCADO, False),
        (StatusProduto.REMOVIDO, StatusProduto.AGUARDANDO_LOCACAO, False),
    ],
)
def test_tabela_transicoes(atual, alvo, permitido):
    assert TABELA_PADRAO.permite(atual, alvo) is permitido


def test_cadastrado_para_retirado_falha():
    with pytest.raises(InvalidTransitionError) as exc:
        TABELA_PADRAO.validar(7, StatusProduto.CADASTRADO, StatusProduto.RETIRADO)
    assert exc.value.contexto["atual"] == "CADASTRADO"
    assert exc.value.contexto["solicitado"] == "RETIRADO"
    assert exc.value.como_dict()["code"] == "INVALID_TRANSITION"


def test_terminais_sem_saida():
    assert TABELA_PADRAO.terminal(StatusProduto.RETIRADO)
    assert TABELA_PADRAO.terminal(StatusProduto.REMOVIDO)
    assert not TABELA_PADRAO.terminal(StatusProduto.LOCADO)


def test_tabela_injetada_e_respeitada(banco, alocador, razao, locs):
    from armazem.usecases.produtos import MaquinaEstadosProduto

    # tabela sem CADASTRADO -> LOCADO: criar com localização deve falhar
    restrita = TabelaTransicoes([(StatusProduto.CADASTRADO, [StatusProduto.AGUARDANDO_LOCACAO])])
    maquina = MaquinaEstadosProduto(banco, tabela=restrita, alocador=alocador, razao=razao)
    with pytest.raises(InvalidTransitionError):
        maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    assert alocador.obter(locs[0]).ocupada is False


# ---------------------------
# criar
# ---------------------------

def test_criar_com_localizacao(maquina, razao, alocador, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    assert p.status == StatusProduto.LOCADO
    assert p.criado_por == "admin"
    assert alocador.obter(locs[0]).peso_atual_kg == 50
    movs = list(razao.por_produto(p.id))
    assert len(movs) == 1 and movs[0].tipo == TipoMovimentacao.ENTRADA


def test_criar_aceita_enum_de_armazenamento(maquina, locs):
    p = maquina.criar(dados_produto(tipo_armazenamento=TipoArmazenamento.BAG), "admin", localizacao_id=locs[0])
    assert p.tipo_armazenamento == TipoArmazenamento.BAG
    assert maquina.obter(p.id).tipo_armazenamento == TipoArmazenamento.BAG


def test_criar_com_localizacao_invalida_desfaz_cadastro(maquina, banco, camara_pequena, alocador):
    loc = alocador.buscar_disponiveis(camara_id=camara_pequena.id)[0]
    with pytest.raises(CapacityError):
        maquina.criar(dados_produto(), "admin", localizacao_id=loc.id)
    with pytest.raises(NotFoundError):
        maquina.criar(dados_produto(), "admin", localizacao_id=9999)
    assert maquina.listar() == []


def test_criar_em_localizacao_ocupada(maquina, locs):
    maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    with pytest.raises(ConflictError):
        maquina.criar(dados_produto(lote="L-2"), "admin", localizacao_id=locs[0])


@pytest.mark.parametrize(
    "campo,valor",
    [
        ("nome", "X"),
        ("lote", ""),
        ("quantidade", 0),
        ("quantidade", 2.5),
        ("peso_por_unidade", 0),
        ("peso_por_unidade", 1001),
        ("tipo_armazenamento", "caixa"),
        ("data_validade", "2024-02-01"),
    ],
)
def test_criar_validacao(maquina, campo, valor):
    with pytest.raises(ValidationError):
        maquina.criar(dados_produto(**{campo: valor}), "admin")


def test_peso_total_nunca_vem_da_entrada(maquina):
    p = maquina.criar(dados_produto(quantidade=3, peso_por_unidade=0.333, peso_total=999), "admin")
    assert p.peso_total == 0.999


# ---------------------------
# alocar / mover
# ---------------------------

def test_alocar_produto_ja_locado_falha(maquina, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    with pytest.raises(InvalidTransitionError):
        maquina.alocar(p.id, locs[1], "admin")


def test_mover(maquina, alocador, razao, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    p = maquina.mover(p.id, locs[1], "operador", "Reorganização")

    assert p.status == StatusProduto.LOCADO
    assert p.localizacao_id == locs[1]
    assert alocador.obter(locs[0]).ocupada is False
    assert alocador.obter(locs[0]).peso_atual_kg == 0
    assert alocador.obter(locs[1]).peso_atual_kg == 50

    mov = list(razao.por_produto(p.id))[-1]
    assert mov.tipo == TipoMovimentacao.TRANSFERENCIA
    assert (mov.localizacao_origem_id, mov.localizacao_destino_id) == (locs[0], locs[1])
    assert mov.motivo == "Reorganização"


def test_mover_para_mesma_localizacao(maquina, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    with pytest.raises(ValidationError):
        maquina.mover(p.id, locs[0], "admin", "nada")


def test_mover_para_ocupada_desfaz_liberacao(maquina, alocador, razao, locs):
    a = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    maquina.criar(dados_produto(lote="L-2"), "admin", localizacao_id=locs[1])
    with pytest.raises(ConflictError):
        maquina.mover(a.id, locs[1], "admin", "troca")
    assert alocador.obter(locs[0]).ocupada is True
    assert maquina.obter(a.id).localizacao_id == locs[0]
    assert len(razao.por_produto(a.id)) == 1


def test_mover_exige_motivo(maquina, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    with pytest.raises(ValidationError):
        maquina.mover(p.id, locs[1], "admin", "   ")


def test_mover_aguardando_locacao_falha(maquina, locs):
    p = maquina.criar(dados_produto(), "admin")
    with pytest.raises(InvalidStateError):
        maquina.mover(p.id, locs[1], "admin", "x")


# ---------------------------
# operações com quantidade
# ---------------------------

def test_mover_parcial(maquina, alocador, razao, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    original, novo = maquina.mover_parcial(p.id, 4, locs[1], "operador", "Separação")

    assert original.quantidade == 6 and original.peso_total == 30
    assert novo.quantidade == 4 and novo.peso_total == 20
    assert novo.produto_origem_id == p.id
    assert novo.status == StatusProduto.LOCADO
    assert (novo.lote, novo.data_validade) == (p.lote, p.data_validade)
    assert alocador.obter(locs[0]).peso_atual_kg == 30
    assert alocador.obter(locs[1]).peso_atual_kg == 20

    mov_orig = list(razao.por_produto(p.id))[-1]
    assert mov_orig.tipo == TipoMovimentacao.TRANSFERENCIA
    assert mov_orig.quantidade == 4
    assert (mov_orig.quantidade_anterior, mov_orig.quantidade_posterior) == (10, 6)
    movs_novo = list(razao.por_produto(novo.id))
    assert [m.tipo for m in movs_novo] == [TipoMovimentacao.ENTRADA]


@pytest.mark.parametrize("quantidade", [10, 11])
def test_mover_parcial_quantidade_total_falha(maquina, locs, quantidade):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    with pytest.raises(ValidationError):
        maquina.mover_parcial(p.id, quantidade, locs[1], "admin", "x")


def test_saida_parcial(maquina, alocador, razao, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    p = maquina.saida_parcial(p.id, 3, "operador", "Amostra")
    assert p.quantidade == 7 and p.peso_total == 35
    assert alocador.obter(locs[0]).peso_atual_kg == 35
    mov = list(razao.por_produto(p.id))[-1]
    assert mov.tipo == TipoMovimentacao.SAIDA
    assert mov.quantidade == 3 and mov.peso == 15


def test_saida_parcial_ate_zero_remove(maquina, alocador, razao, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    p = maquina.saida_parcial(p.id, 10, "operador", "Esgotado")
    assert p.status == StatusProduto.REMOVIDO
    assert p.localizacao_id is None
    assert alocador.obter(locs[0]).ocupada is False
    movs = list(razao.por_produto(p.id))
    assert len(movs) == 2
    assert movs[-1].quantidade_posterior == 0


def test_adicionar_estoque(maquina, alocador, razao, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    p = maquina.adicionar_estoque(p.id, 6, "admin", "Reposição")
    assert p.quantidade == 16 and p.peso_total == 80
    assert alocador.obter(locs[0]).peso_atual_kg == 80
    mov = list(razao.por_produto(p.id))[-1]
    assert mov.tipo == TipoMovimentacao.AJUSTE
    assert mov.localizacao_destino_id == locs[0]


def test_adicionar_estoque_excede_capacidade(maquina, alocador, razao, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    with pytest.raises(CapacityError):
        maquina.adicionar_estoque(p.id, 11, "admin", "Reposição")
    assert maquina.obter(p.id).quantidade == 10
    assert alocador.obter(locs[0]).peso_atual_kg == 50
    assert len(razao.por_produto(p.id)) == 1


# ---------------------------
# remover
# ---------------------------

def test_remover_vinculado(maquina, alocador, razao, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    p = maquina.remover(p.id, "admin", "Lote contaminado")
    assert p.status == StatusProduto.REMOVIDO
    assert alocador.obter(locs[0]).ocupada is False
    mov = list(razao.por_produto(p.id))[-1]
    assert mov.tipo == TipoMovimentacao.SAIDA
    assert mov.localizacao_origem_id == locs[0]


def test_remover_sem_localizacao(maquina, razao):
    p = maquina.criar(dados_produto(), "admin")
    p = maquina.remover(p.id, "admin", "Cadastro duplicado")
    assert p.status == StatusProduto.REMOVIDO
    assert "Cadastro duplicado" in p.observacoes
    assert list(razao.por_produto(p.id)) == []


def test_remover_cadastrado(maquina, banco):
    with banco.transacao("seed") as tx:
        dados = dados_produto(status=StatusProduto.CADASTRADO, peso_total=50, tipo_armazenamento="saco")
        produto_id = ProdutoRepo(tx.conn, tx).inserir(dados)
    p = maquina.remover(produto_id, "admin", "Cadastro incompleto")
    assert p.status == StatusProduto.REMOVIDO


def test_operacoes_sobre_terminal_falham(maquina, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    maquina.remover(p.id, "admin", "fim")
    with pytest.raises(InvalidTransitionError):
        maquina.remover(p.id, "admin", "de novo")
    with pytest.raises(InvalidTransitionError):
        maquina.alocar(p.id, locs[1], "admin")
    with pytest.raises(InvalidTransitionError):
        maquina.mover(p.id, locs[1], "admin", "x")
    with pytest.raises(InvalidTransitionError):
        maquina.adicionar_estoque(p.id, 1, "admin", "x")


def test_produto_inexistente(maquina, locs):
    with pytest.raises(NotFoundError):
        maquina.obter(404)
    with pytest.raises(NotFoundError):
        maquina.alocar(404, locs[0], "admin")


def test_versao_incrementa(maquina, locs):
    p = maquina.criar(dados_produto(), "admin")
    v0 = p.versao
    p = maquina.alocar(p.id, locs[0], "admin")
    assert p.versao > v0


def test_listar_por_status_e_camara(maquina, camara, locs):
    maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    maquina.criar(dados_produto(lote="L-2"), "admin")
    assert len(maquina.listar(status=StatusProduto.LOCADO)) == 1
    assert len(maquina.listar(status=[StatusProduto.AGUARDANDO_LOCACAO, StatusProduto.LOCADO])) == 2
    assert len(maquina.listar(camara_id=camara.id)) == 1
