import sqlite3

import pytest

from armazem.domain.coordenadas import parse_codigo
from armazem.domain.erros import (
    CapacityError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from armazem.domain.models import Dimensoes
from armazem.domain.policies import PoliticaCapacidade

from conftest import dados_produto


def test_provisionar_2222_gera_16_codigos_unicos(camaras, alocador, banco):
    camara = camaras.criar("C1", Dimensoes(2, 2, 2, 2))
    res = alocador.provisionar(camara.id)
    assert res.criadas == 16
    assert len(set(res.codigos)) == 16
    assert res.capacidade_total_kg == 16 * 1000.0
    for codigo in res.codigos:
        loc = alocador.obter_por_codigo(camara.id, codigo)
        assert parse_codigo(codigo) == loc.coordenada
    assert "Q2-LB-F2-A2" in res.codigos


def test_provisionar_sem_sobrescrever_conflita(alocador, camara):
    with pytest.raises(ConflictError):
        alocador.provisionar(camara.id)


def test_provisionar_sobrescrever_regenera(alocador, camara):
    res = alocador.provisionar(camara.id, dimensoes=(1, 1, 2, 3), sobrescrever=True)
    assert res.criadas == 6
    assert res.removidas == 16
    assert len(alocador.buscar_disponiveis(camara_id=camara.id)) == 6


def test_provisionar_sobrescrever_com_ocupada_falha(alocador, camara, locs):
    alocador.reservar(locs[0], 10)
    with pytest.raises(ConflictError):
        alocador.provisionar(camara.id, sobrescrever=True)
    assert alocador.obter(locs[0]).ocupada is True


def test_provisionar_sobrescrever_com_historico_falha(alocador, maquina, camara, locs):
    p = maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    maquina.remover(p.id, "admin", "fim")
    with pytest.raises(ConflictError):
        alocador.provisionar(camara.id, sobrescrever=True)


def test_provisionar_camara_inexistente(alocador):
    with pytest.raises(NotFoundError):
        alocador.provisionar(999)


def test_politica_com_variacao():
    politica = PoliticaCapacidade(capacidade_padrao_kg=1000, variacao=True)
    from armazem.domain.models import Coordenada

    assert politica.capacidade_para(Coordenada(1, 1, 1, 1)) == 1200
    assert politica.capacidade_para(Coordenada(1, 1, 1, 4)) == 1000
    assert politica.capacidade_para(Coordenada(1, 1, 1, 6)) == 800
    assert politica.capacidade_para(Coordenada(2, 2, 1, 1)) == 1320


def test_reservar_e_liberar(alocador, locs):
    loc = alocador.reservar(locs[0], 60)
    assert loc.ocupada is True and loc.peso_atual_kg == 60
    assert alocador.liberar(locs[0]) is True
    loc = alocador.obter(locs[0])
    assert loc.ocupada is False and loc.peso_atual_kg == 0


def test_liberar_idempotente(alocador, locs):
    alocador.reservar(locs[0], 60)
    assert alocador.liberar(locs[0]) is True
    depois_primeira = alocador.obter(locs[0])
    assert alocador.liberar(locs[0]) is False
    assert alocador.obter(locs[0]) == depois_primeira


def test_liberar_inexistente(alocador):
    with pytest.raises(NotFoundError):
        alocador.liberar(12345)


def test_reservar_erros(alocador, locs):
    with pytest.raises(NotFoundError):
        alocador.reservar(12345, 1)
    with pytest.raises(CapacityError):
        alocador.reservar(locs[0], 100.5)
    with pytest.raises(ValidationError):
        alocador.reservar(locs[0], 0)
    alocador.reservar(locs[0], 100)
    with pytest.raises(ConflictError):
        alocador.reservar(locs[0], 1)


def test_ajustar_peso(alocador, locs):
    with pytest.raises(InvalidStateError):
        alocador.ajustar_peso(locs[0], 5)
    alocador.reservar(locs[0], 50)
    assert alocador.ajustar_peso(locs[0], 25).peso_atual_kg == 75
    assert alocador.ajustar_peso(locs[0], -70).peso_atual_kg == 5
    with pytest.raises(CapacityError):
        alocador.ajustar_peso(locs[0], 96)
    with pytest.raises(CapacityError):
        alocador.ajustar_peso(locs[0], -6)
    assert alocador.obter(locs[0]).peso_atual_kg == 5


def test_check_de_capacidade_no_schema(banco, locs):
    with banco.transacao("teste") as tx:
        with pytest.raises(sqlite3.IntegrityError):
            tx.conn.execute(
                "UPDATE localizacao SET peso_atual_kg = capacidade_max_kg + 1 WHERE id = ?", (locs[0],)
            )


def test_buscar_disponiveis(alocador, camara, camaras, locs):
    alocador.reservar(locs[0], 10)
    livres = alocador.buscar_disponiveis(peso_kg=50, camara_id=camara.id)
    assert locs[0] not in [loc.id for loc in livres]
    assert len(livres) == 15
    andares = [loc.coordenada.andar for loc in livres]
    assert andares == sorted(andares)
    assert alocador.buscar_disponiveis(peso_kg=101, camara_id=camara.id) == []
    assert len(alocador.buscar_disponiveis(camara_id=camara.id, limite=3)) == 3

    camaras.alterar_status(camara.id, "maintenance")
    assert alocador.buscar_disponiveis(camara_id=camara.id) == []


def test_obter_por_codigo_aceita_forma_numerica(alocador, camara):
    a = alocador.obter_por_codigo(camara.id, "Q1-LB-F1-A2")
    b = alocador.obter_por_codigo(camara.id, "Q1-L2-F1-A2")
    assert a.id == b.id
    assert a.codigo == "Q1-LB-F1-A2"
    assert a.nivel_acesso == "ground"
