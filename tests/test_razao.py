import sqlite3

import pytest

from armazem.domain.erros import ImmutableRecordError, NotFoundError, ValidationError
from armazem.domain.models import Movimentacao, TipoMovimentacao
from armazem.infra.repositories import MovimentacaoRepo

from conftest import dados_produto


@pytest.fixture
def produto(maquina):
    return maquina.criar(dados_produto(), "admin")


def _mov(produto_id, tipo, origem=None, destino=None, **extra):
    campos = dict(
        id=None,
        produto_id=produto_id,
        tipo=tipo,
        quantidade=10,
        peso=50.0,
        usuario_id="admin",
        motivo="teste",
        localizacao_origem_id=origem,
        localizacao_destino_id=destino,
    )
    campos.update(extra)
    return Movimentacao(**campos)


@pytest.mark.parametrize(
    "tipo, origem, destino",
    [
        (TipoMovimentacao.TRANSFERENCIA, None, 1),
        (TipoMovimentacao.TRANSFERENCIA, 0, None),
        (TipoMovimentacao.TRANSFERENCIA, 0, 0),
        (TipoMovimentacao.ENTRADA, None, None),
        (TipoMovimentacao.ENTRADA, 0, 1),
        (TipoMovimentacao.SAIDA, None, None),
        (TipoMovimentacao.SAIDA, 0, 1),
        (TipoMovimentacao.AJUSTE, 0, None),
    ],
)
def test_regras_de_localizacao_por_tipo(razao, produto, locs, tipo, origem, destino):
    o = locs[origem] if origem is not None else None
    d = locs[destino] if destino is not None else None
    with pytest.raises(ValidationError):
        razao.registrar(_mov(produto.id, tipo, o, d))
    assert len(razao.por_produto(produto.id)) == 0


@pytest.mark.parametrize(
    "extra",
    [
        {"quantidade": -1},
        {"quantidade": 2.5},
        {"peso": -0.1},
        {"usuario_id": "  "},
        {"motivo": ""},
    ],
)
def test_campos_invalidos(razao, produto, locs, extra):
    with pytest.raises(ValidationError):
        razao.registrar(_mov(produto.id, TipoMovimentacao.ENTRADA, destino=locs[0], **extra))


def test_tipo_desconhecido(razao, produto, locs):
    with pytest.raises(ValidationError) as exc:
        razao.registrar(_mov(produto.id, "venda", destino=locs[0]))
    assert exc.value.contexto["campo"] == "tipo"
    assert len(razao.por_produto(produto.id)) == 0


def test_produto_e_localizacao_inexistentes(razao, produto, locs):
    with pytest.raises(NotFoundError):
        razao.registrar(_mov(9999, TipoMovimentacao.ENTRADA, destino=locs[0]))
    with pytest.raises(NotFoundError):
        razao.registrar(_mov(produto.id, TipoMovimentacao.ENTRADA, destino=9999))


def test_aceita_dict_e_atribui_sequencia(razao, produto, locs):
    m1 = razao.registrar(
        {
            "produto_id": produto.id,
            "tipo": "entry",
            "quantidade": 10,
            "peso": 50,
            "usuario_id": "admin",
            "motivo": "carga",
            "localizacao_destino_id": locs[0],
        }
    )
    m2 = razao.registrar(_mov(produto.id, TipoMovimentacao.TRANSFERENCIA, locs[0], locs[1]))
    m3 = razao.registrar(_mov(produto.id, TipoMovimentacao.SAIDA, origem=locs[1]))

    assert m1.tipo == TipoMovimentacao.ENTRADA
    assert [m1.sequencia, m2.sequencia, m3.sequencia] == [1, 2, 3]
    assert m1.timestamp <= m2.timestamp <= m3.timestamp
    assert [m.id for m in razao.por_produto(produto.id)] == [m1.id, m2.id, m3.id]
    assert razao.obter(m2.id) == m2


def test_historico_reiniciavel(razao, produto, locs):
    historico = razao.por_produto(produto.id)
    assert list(historico) == []
    razao.registrar(_mov(produto.id, TipoMovimentacao.ENTRADA, destino=locs[0]))
    # cada iteração relê o estado confirmado
    assert len(list(historico)) == 1
    assert list(historico) == list(historico)
    assert historico.lista() == list(historico)


def test_por_localizacao_casa_origem_e_destino(razao, produto, locs):
    razao.registrar(_mov(produto.id, TipoMovimentacao.ENTRADA, destino=locs[0]))
    razao.registrar(_mov(produto.id, TipoMovimentacao.TRANSFERENCIA, locs[0], locs[1]))
    razao.registrar(_mov(produto.id, TipoMovimentacao.SAIDA, origem=locs[1]))

    assert len(razao.por_localizacao(locs[0])) == 2
    assert len(razao.por_localizacao(locs[1])) == 2
    assert len(razao.por_localizacao(locs[2])) == 0


def test_listar_por_tipo_e_usuario(razao, produto, locs):
    razao.registrar(_mov(produto.id, TipoMovimentacao.ENTRADA, destino=locs[0]))
    razao.registrar(_mov(produto.id, TipoMovimentacao.SAIDA, origem=locs[0], usuario_id="op1"))

    assert [m.tipo for m in razao.listar(tipo=TipoMovimentacao.SAIDA)] == [TipoMovimentacao.SAIDA]
    assert len(razao.listar(usuario_id="op1")) == 1
    assert razao.listar(inicio="2999-01-01") == []


def test_razao_imutavel(razao, banco, produto, locs):
    mov = razao.registrar(_mov(produto.id, TipoMovimentacao.ENTRADA, destino=locs[0]))

    with pytest.raises(ImmutableRecordError):
        razao.alterar(mov.id, quantidade=1)
    with pytest.raises(ImmutableRecordError):
        razao.apagar(mov.id)

    with banco.leitura() as conn:
        with pytest.raises(ImmutableRecordError):
            MovimentacaoRepo(conn).atualizar(mov.id, quantidade=1)
        with pytest.raises(ImmutableRecordError):
            MovimentacaoRepo(conn).apagar(mov.id)

    with banco.transacao("teste") as tx:
        with pytest.raises(sqlite3.IntegrityError, match="imutavel"):
            tx.conn.execute("UPDATE movimentacao SET quantidade = 1 WHERE id = ?", (mov.id,))
        with pytest.raises(sqlite3.IntegrityError, match="imutavel"):
            tx.conn.execute("DELETE FROM movimentacao WHERE id = ?", (mov.id,))

    assert razao.obter(mov.id) == mov


def test_obter_inexistente(razao):
    with pytest.raises(NotFoundError):
        razao.obter(4242)
