# armazem/usecases/relatorios.py
"""
Relatórios (somente leitura) em ``pandas.DataFrame``:
- inventário (produtos + localização + câmara)
- movimentações (filtro por período e tipo)
- ocupação por câmara
- produtos a vencer (janela de dias) com classe de vencimento

``exportar_xlsx`` grava uma planilha simples; layout e formatação ficam
com quem consome o relatório.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, List, Optional

import pandas as pd

from armazem.config import DB_PATH, DEFAULTS
from armazem.domain.models import StatusProduto, TipoMovimentacao
from armazem.domain.policies import status_validade
from armazem.infra.db import connect
from armazem.infra.logger import log_database_operation, log_file_operation, log_system_event
from armazem.infra.views import create_views

_ATIVOS = tuple(
    s.value for s in (StatusProduto.AGUARDANDO_LOCACAO, StatusProduto.LOCADO, StatusProduto.AGUARDANDO_RETIRADA)
)


def _consulta(sql: str, params: List[Any], db_path: str) -> pd.DataFrame:
    create_views(db_path)
    with connect(db_path) as c:
        df = pd.read_sql_query(sql, c, params=params)
    log_database_operation("views", "SELECT", len(df))
    return df


# ----------------------
# 1) Inventário
# ----------------------

def relatorio_inventario(db_path: str = DB_PATH, camara_id: Optional[int] = None,
                         incluir_terminais: bool = False) -> pd.DataFrame:
    sql = "SELECT * FROM vw_inventario WHERE 1 = 1"
    params: List[Any] = []
    if not incluir_terminais:
        sql += f" AND status IN ({', '.join('?' for _ in _ATIVOS)})"
        params.extend(_ATIVOS)
    if camara_id is not None:
        sql += " AND camara_id = ?"
        params.append(camara_id)
    sql += " ORDER BY camara_nome, localizacao_codigo, produto_id"
    return _consulta(sql, params, db_path)


# ----------------------
# 2) Movimentações
# ----------------------

def relatorio_movimentacoes(db_path: str = DB_PATH, inicio: Optional[str] = None,
                            fim: Optional[str] = None,
                            tipo: Optional[TipoMovimentacao] = None) -> pd.DataFrame:
    """Razão detalhado. ``inicio``/``fim`` são datas ISO inclusivas."""
    sql = "SELECT * FROM vw_movimentacoes WHERE 1 = 1"
    params: List[Any] = []
    if inicio:
        sql += " AND date(timestamp) >= date(?)"
        params.append(inicio)
    if fim:
        sql += " AND date(timestamp) <= date(?)"
        params.append(fim)
    if tipo is not None:
        sql += " AND tipo = ?"
        params.append(TipoMovimentacao(tipo).value)
    sql += " ORDER BY timestamp, sequencia, id"
    return _consulta(sql, params, db_path)


# ----------------------
# 3) Ocupação por câmara
# ----------------------

def relatorio_ocupacao(db_path: str = DB_PATH) -> pd.DataFrame:
    df = _consulta("SELECT * FROM vw_ocupacao_camara ORDER BY camara_id", [], db_path)
    total = df["total_localizacoes"].where(df["total_localizacoes"] > 0)
    capacidade = df["capacidade_total_kg"].where(df["capacidade_total_kg"] > 0)
    df["percentual_ocupadas"] = (df["ocupadas"] / total * 100).round(1).fillna(0.0)
    df["percentual_peso"] = (df["peso_atual_kg"] / capacidade * 100).round(1).fillna(0.0)
    return df


# ----------------------
# 4) Produtos a vencer
# ----------------------

def relatorio_produtos_a_vencer(db_path: str = DB_PATH, janela_dias: Optional[int] = None,
                                hoje: Optional[date] = None) -> pd.DataFrame:
    """Produtos ativos com validade até ``hoje + janela_dias`` (inclui vencidos)."""
    hoje = hoje or date.today()
    janela = DEFAULTS.dias_alerta_validade if janela_dias is None else int(janela_dias)
    limite = (hoje + timedelta(days=janela)).isoformat()
    sql = (
        "SELECT * FROM vw_inventario"
        f" WHERE status IN ({', '.join('?' for _ in _ATIVOS)})"
        " AND data_validade IS NOT NULL AND data_validade <= ?"
        " ORDER BY data_validade, produto_id"
    )
    df = _consulta(sql, [*_ATIVOS, limite], db_path)
    df["dias_para_vencer"] = [
        (date.fromisoformat(str(v)) - hoje).days for v in df["data_validade"]
    ]
    df["classe_validade"] = [status_validade(v, hoje) for v in df["data_validade"]]
    log_system_event("relatorio_vencimentos", {"janela_dias": janela, "linhas": len(df)})
    return df


# ----------------------
# exportação
# ----------------------

def exportar_xlsx(df: pd.DataFrame, caminho: str, aba: str = "relatorio") -> str:
    """Grava o DataFrame numa planilha simples (sem formatação)."""
    df.to_excel(caminho, sheet_name=aba, index=False, engine="openpyxl")
    log_file_operation("export", caminho, len(df))
    return caminho
