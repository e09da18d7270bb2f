from pathlib import Path

import pytest

from armazem.config import ArmazemConfig
from armazem.domain.policies import PoliticaCapacidade
from armazem.infra.locks import RegistroLocks
from armazem.infra.migrations import apply_migrations
from armazem.infra.repositories import LocalizacaoRepo
from armazem.infra.transacao import BancoArmazem
from armazem.usecases.alocador import AlocadorLocalizacoes
from armazem.usecases.camaras import AdministracaoCamaras
from armazem.usecases.produtos import MaquinaEstadosProduto
from armazem.usecases.razao import RazaoMovimentacoes
from armazem.usecases.retiradas import FluxoRetirada


def dados_produto(**extra):
    dados = {
        "nome": "Soja BRS 284",
        "lote": "L-2024-001",
        "tipo_semente": "soja",
        "quantidade": 10,
        "tipo_armazenamento": "saco",
        "peso_por_unidade": 5,
        "data_entrada": "2024-03-01",
        "data_validade": "2025-03-01",
    }
    dados.update(extra)
    return dados


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "armazem_test.sqlite")
    apply_migrations(path)
    return path


@pytest.fixture
def banco(db_path) -> BancoArmazem:
    # registro de locks próprio: testes não compartilham locks entre bancos
    return BancoArmazem(ArmazemConfig(db_path=db_path), locks=RegistroLocks())


@pytest.fixture
def camaras(banco) -> AdministracaoCamaras:
    return AdministracaoCamaras(banco)


@pytest.fixture
def alocador(banco) -> AlocadorLocalizacoes:
    return AlocadorLocalizacoes(banco)


@pytest.fixture
def razao(banco) -> RazaoMovimentacoes:
    return RazaoMovimentacoes(banco)


@pytest.fixture
def maquina(banco, alocador, razao) -> MaquinaEstadosProduto:
    return MaquinaEstadosProduto(banco, alocador=alocador, razao=razao)


@pytest.fixture
def fluxo(banco, maquina) -> FluxoRetirada:
    return FluxoRetirada(banco, maquina)


@pytest.fixture
def camara(camaras):
    """Câmara 2x2x2x2 com 16 localizações de 100 kg."""
    return camaras.criar(
        "Câmara 100",
        (2, 2, 2, 2),
        provisionar=True,
        politica=PoliticaCapacidade(capacidade_padrao_kg=100),
    )


@pytest.fixture
def camara_pequena(camaras):
    """Câmara 1x1x1x2 com localizações de 40 kg."""
    return camaras.criar(
        "Câmara 40",
        (1, 1, 1, 2),
        provisionar=True,
        politica=PoliticaCapacidade(capacidade_padrao_kg=40),
    )


@pytest.fixture
def locs(banco, camara):
    """Ids das localizações da câmara de 100 kg, na ordem da grade."""
    with banco.leitura() as conn:
        return [loc.id for loc in LocalizacaoRepo(conn).listar_por_camara(camara.id)]
