# armazem/adapters/planilha_loader.py
"""
Loader de planilhas (XLSX) de PRODUTOS.

- lê a planilha com pandas (motor openpyxl);
- normaliza cabeçalhos (acentos, variações, sinônimos);
- retorna dicionários com as chaves esperadas por ``MaquinaEstadosProduto.criar``.

Observações:
- Não converte quantidade nem peso: os valores seguem como texto e são
  interpretados linha a linha na importação (um erro não derruba o lote).
- Datas são normalizadas para ISO (YYYY-MM-DD) quando possível.
- ``_linha`` guarda o número da linha na planilha (cabeçalho = linha 1).
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import pandas as pd


# ---------------------------
# utilitários de normalização
# ---------------------------

def _slug(s: str) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, sem não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def _safe_get(row, key) -> Optional[str]:
    """Valor da linha sem NA; strings vazias viram None."""
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    s = str(val).strip()
    return s or None


def _to_date_iso(val: Any) -> Optional[str]:
    """Data em ISO ou o texto original (a validação de negócio rejeita depois)."""
    if val is None:
        return None
    d = pd.to_datetime(val, dayfirst="/" in str(val), errors="coerce")
    if pd.isna(d):
        return str(val)
    return d.date().isoformat()


_ALIASES = {
    "nome": "nome",
    "produto": "nome",
    "descricao": "nome",

    "lote": "lote",
    "numero do lote": "lote",
    "n do lote": "lote",

    "tipo semente": "tipo_semente",
    "semente": "tipo_semente",
    "cultura": "tipo_semente",
    "especie": "tipo_semente",

    "quantidade": "quantidade",
    "qtde": "quantidade",
    "qtd": "quantidade",

    "tipo armazenamento": "tipo_armazenamento",
    "armazenamento": "tipo_armazenamento",
    "embalagem": "tipo_armazenamento",

    "peso por unidade": "peso_por_unidade",
    "peso unidade": "peso_por_unidade",
    "peso unitario": "peso_por_unidade",
    "peso kg": "peso_por_unidade",

    "cliente": "cliente_id",
    "cliente id": "cliente_id",

    "data entrada": "data_entrada",
    "entrada": "data_entrada",
    "data de entrada": "data_entrada",

    "validade": "data_validade",
    "data validade": "data_validade",
    "data de validade": "data_validade",

    "localizacao": "localizacao",
    "local": "localizacao",
    "codigo localizacao": "localizacao",
    "posicao": "localizacao",

    "camara": "camara",

    "observacoes": "observacoes",
    "observacao": "observacoes",
    "obs": "observacoes",
}


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Renomeia colunas com base em sinônimos/variações."""
    new_cols = {}
    for col in df.columns:
        key = _slug(col)
        new_cols[col] = _ALIASES.get(key, key.replace(" ", "_"))
    return df.rename(columns=new_cols)


# ---------------------------
# loader público (XLSX)
# ---------------------------

def load_produtos_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de PRODUTOS.

    Campos de saída (chaves do dict por linha):
      - nome, lote, tipo_semente, tipo_armazenamento: str | None
      - quantidade, peso_por_unidade: str | None (texto cru)
      - data_entrada, data_validade: ISO date | None
      - cliente_id, observacoes: str | None
      - localizacao: código da localização (opcional), camara: nome (opcional)
      - _linha: número da linha na planilha
    """
    df = pd.read_excel(path, dtype="string", engine="openpyxl")
    df = _normalize_columns(df)
    out: List[Dict[str, Any]] = []
    for idx, row in df.iterrows():
        rec = {
            "_linha": int(idx) + 2,
            "nome": _safe_get(row, "nome"),
            "lote": _safe_get(row, "lote"),
            "tipo_semente": _safe_get(row, "tipo_semente"),
            "quantidade": _safe_get(row, "quantidade"),
            "tipo_armazenamento": _safe_get(row, "tipo_armazenamento"),
            "peso_por_unidade": _safe_get(row, "peso_por_unidade"),
            "cliente_id": _safe_get(row, "cliente_id"),
            "data_entrada": _to_date_iso(_safe_get(row, "data_entrada")),
            "data_validade": _to_date_iso(_safe_get(row, "data_validade")),
            "observacoes": _safe_get(row, "observacoes"),
            "localizacao": _safe_get(row, "localizacao"),
            "camara": _safe_get(row, "camara"),
        }
        # linhas totalmente vazias são ignoradas
        if all(v is None for k, v in rec.items() if k != "_linha"):
            continue
        out.append(rec)
    return out
