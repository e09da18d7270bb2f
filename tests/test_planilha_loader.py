from pathlib import Path

import pandas as pd
import pytest

from armazem.adapters.planilha_loader import _normalize_columns, _slug, load_produtos_from_xlsx
from armazem.domain.models import StatusProduto
from armazem.usecases.importar_produtos import importar_produtos


def _planilha(tmp_path: Path, linhas) -> str:
    caminho = tmp_path / "produtos.xlsx"
    pd.DataFrame(linhas).to_excel(caminho, index=False, engine="openpyxl")
    return str(caminho)


LINHA_OK = {
    "Produto": "Milho AG 1051",
    "Nº do Lote": "M-01",
    "Cultura": "milho",
    "Qtde": "20 sacos",
    "Embalagem": "Saco",
    "Peso Unitário": "2,5",
    "Data de Entrada": "01/03/2024",
    "Validade": "2025-03-01",
    "Localização": None,
    "Câmara": None,
}


def test_slug_e_aliases():
    assert _slug("  Peso Unitário (kg) ") == "peso unitario kg"
    df = _normalize_columns(pd.DataFrame(columns=["Nº do Lote", "Qtd", "Posição", "Coluna Extra"]))
    assert list(df.columns) == ["lote", "quantidade", "localizacao", "coluna_extra"]


def test_load_normaliza_e_ignora_linhas_vazias(tmp_path):
    vazia = {k: None for k in LINHA_OK}
    caminho = _planilha(tmp_path, [LINHA_OK, vazia, dict(LINHA_OK, **{"Nº do Lote": "M-02"})])
    registros = load_produtos_from_xlsx(caminho)

    assert [r["_linha"] for r in registros] == [2, 4]
    rec = registros[0]
    assert rec["nome"] == "Milho AG 1051"
    assert rec["lote"] == "M-01"
    assert rec["tipo_semente"] == "milho"
    assert rec["quantidade"] == "20 sacos"
    assert rec["peso_por_unidade"] == "2,5"
    assert rec["data_entrada"] == "2024-03-01"
    assert rec["data_validade"] == "2025-03-01"
    assert rec["localizacao"] is None


def test_importar_coleta_erros_por_linha(tmp_path, maquina, alocador, camara):
    linhas = [
        LINHA_OK,
        dict(LINHA_OK, **{"Nº do Lote": "M-02", "Qtde": "2,5"}),
        dict(LINHA_OK, **{"Nº do Lote": "M-03", "Embalagem": "caixa"}),
        dict(LINHA_OK, **{"Nº do Lote": "M-04", "Localização": "Q1-LA-F1-A1", "Câmara": "Câmara 100"}),
        dict(LINHA_OK, **{"Nº do Lote": "M-05", "Localização": "Q9-LA-F1-A1", "Câmara": "Câmara 100"}),
        dict(LINHA_OK, **{"Nº do Lote": "M-06", "Validade": "2023-01-01"}),
    ]
    info = importar_produtos(_planilha(tmp_path, linhas), maquina, "admin")

    assert info["total"] == 6
    assert info["sucessos"] == 2
    assert [(e["linha"], e["categoria"]) for e in info["erros"]] == [
        (3, "validacao"),
        (4, "validacao"),
        (6, "nao_encontrado"),
        (7, "validacao"),
    ]

    solto, alocado = (maquina.obter(pid) for pid in info["produtos"])
    assert solto.status == StatusProduto.AGUARDANDO_LOCACAO
    assert solto.peso_total == 50
    assert alocado.status == StatusProduto.LOCADO
    assert alocador.obter(alocado.localizacao_id).codigo == "Q1-LA-F1-A1"


def test_importar_localizacao_com_camara_padrao(tmp_path, maquina, camara):
    linhas = [dict(LINHA_OK, **{"Localização": "1,B,1,1"})]
    caminho = _planilha(tmp_path, linhas)

    sem_camara = importar_produtos(caminho, maquina, "admin")
    assert sem_camara["erros"][0]["categoria"] == "validacao"

    info = importar_produtos(caminho, maquina, "admin", camara_id=camara.id)
    assert info["erros"] == []


def test_arquivo_inexistente(tmp_path, maquina):
    with pytest.raises(FileNotFoundError):
        importar_produtos(str(tmp_path / "nao_existe.xlsx"), maquina, "admin")
