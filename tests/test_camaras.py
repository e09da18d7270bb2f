import pytest

from armazem.domain.erros import ConflictError, NotFoundError, ValidationError
from armazem.domain.models import Dimensoes, StatusCamara
from armazem.domain.policies import PoliticaCapacidade

from conftest import dados_produto


def test_criar_sem_provisionar(camaras, alocador):
    camara = camaras.criar(" C2 ", {"quadras": 1, "lados": 3, "filas": 1, "andares": 1},
                           descricao="Sementes de milho", temperatura_alvo=10.0, umidade_alvo=45)
    assert camara.nome == "C2"
    assert camara.status == StatusCamara.ATIVA
    assert camara.dimensoes == Dimensoes(1, 3, 1, 1)
    assert camaras.resumo_ocupacao(camara.id)["total"] == 0
    assert camaras.obter(camara.id) == camara


def test_nome_duplicado_conflita(camaras, camara):
    with pytest.raises(ConflictError):
        camaras.criar("Câmara 100", (1, 1, 1, 1))
    assert [c.nome for c in camaras.listar()] == ["Câmara 100"]


@pytest.mark.parametrize(
    "nome, dims, umidade",
    [("X", (1, 1, 1, 1), None), ("C3", (1, 1, 1, 0), None), ("C3", (1, 1, 1, 1), 120)],
)
def test_criar_invalido(camaras, nome, dims, umidade):
    with pytest.raises(ValidationError):
        camaras.criar(nome, dims, umidade_alvo=umidade)
    assert camaras.listar() == []


def test_falha_no_provisionamento_desfaz_camara(camaras):
    with pytest.raises(ValidationError):
        camaras.criar("C4", (1, 1, 1, 1), provisionar=True,
                      politica=PoliticaCapacidade(capacidade_padrao_kg=0))
    assert camaras.listar() == []


def test_arvore(camaras, maquina, camara, locs):
    maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    arvore = camaras.arvore(camara.id)

    assert arvore["nome"] == "Câmara 100"
    assert arvore["status"] == "active"
    assert sorted(arvore["quadras"]) == [1, 2]
    assert sorted(arvore["quadras"][1]) == ["A", "B"]
    fila = arvore["quadras"][1]["A"][1]
    assert [loc["andar"] for loc in fila] == [1, 2]
    assert fila[0]["codigo"] == "Q1-LA-F1-A1"
    assert fila[0]["ocupada"] is True
    assert fila[0]["peso_atual_kg"] == 50
    assert fila[1]["ocupada"] is False
    assert fila[0]["nivel_acesso"] == "ground"


def test_resumo_ocupacao(camaras, maquina, camara, locs):
    maquina.criar(dados_produto(), "admin", localizacao_id=locs[0])
    maquina.criar(dados_produto(quantidade=4), "admin", localizacao_id=locs[1])
    resumo = camaras.resumo_ocupacao(camara.id)
    assert resumo["total"] == 16
    assert resumo["ocupadas"] == 2
    assert resumo["livres"] == 14
    assert resumo["percentual_ocupadas"] == 12.5
    assert resumo["capacidade_total_kg"] == 1600
    assert resumo["peso_atual_kg"] == 70
    assert resumo["percentual_peso"] == 4.4


def test_alterar_status(camaras, camara):
    assert camaras.alterar_status(camara.id, StatusCamara.INATIVA).status == StatusCamara.INATIVA
    assert camaras.alterar_status(camara.id, "active").status == StatusCamara.ATIVA
    with pytest.raises(ValidationError):
        camaras.alterar_status(camara.id, "fechada")
    with pytest.raises(NotFoundError):
        camaras.alterar_status(999, "active")


def test_camara_inexistente(camaras):
    for consulta in (camaras.obter, camaras.arvore, camaras.resumo_ocupacao):
        with pytest.raises(NotFoundError):
            consulta(999)
