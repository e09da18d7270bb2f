# armazem/usecases/importar_produtos.py
"""
UC: Importar PRODUTOS em lote a partir de XLSX.

Cada linha vira um ``criar`` em transação própria: uma linha inválida não
impede as demais. Falhas são coletadas (linha, mensagem, categoria) e
devolvidas no resumo, além de registradas no log.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from armazem.adapters.parsers import (
    parse_coordenada,
    parse_data_iso,
    parse_enum,
    parse_numero,
    parse_quantidade,
)
from armazem.adapters.planilha_loader import load_produtos_from_xlsx
from armazem.domain.erros import ArmazemError, NotFoundError, ValidationError
from armazem.domain.models import TipoArmazenamento
from armazem.infra.logger import log_file_operation, log_system_event, print_system
from armazem.infra.repositories import CamaraRepo, LocalizacaoRepo
from armazem.usecases.produtos import MaquinaEstadosProduto


def _dados_linha(rec: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "nome": rec.get("nome"),
        "lote": rec.get("lote"),
        "tipo_semente": rec.get("tipo_semente"),
        "quantidade": parse_quantidade(rec.get("quantidade")),
        "tipo_armazenamento": parse_enum(TipoArmazenamento, rec.get("tipo_armazenamento"), "tipo_armazenamento"),
        "peso_por_unidade": parse_numero(rec.get("peso_por_unidade")),
        "cliente_id": rec.get("cliente_id"),
        "data_entrada": parse_data_iso(rec.get("data_entrada")),
        "data_validade": parse_data_iso(rec.get("data_validade")),
        "observacoes": rec.get("observacoes"),
    }


def _resolver_localizacao(maquina: MaquinaEstadosProduto, rec: Dict[str, Any],
                          camara_id: Optional[int]) -> Optional[int]:
    codigo = rec.get("localizacao")
    if not codigo:
        return None
    if rec.get("camara"):
        with maquina.banco.leitura() as conn:
            camara = CamaraRepo(conn).obter_por_nome(rec["camara"])
        if camara is None:
            raise NotFoundError("camara", rec["camara"])
        camara_id = camara.id
    if camara_id is None:
        raise ValidationError("localização informada sem câmara", campo="camara", valor=codigo)
    coord = parse_coordenada(codigo)
    with maquina.banco.leitura() as conn:
        loc = LocalizacaoRepo(conn).obter_por_coordenada(camara_id, coord)
    if loc is None:
        raise NotFoundError("localizacao", codigo)
    return loc.id


def importar_produtos(path: str, maquina: MaquinaEstadosProduto, usuario_id: str,
                      camara_id: Optional[int] = None) -> Dict[str, Any]:
    """Importa a planilha e retorna ``{total, sucessos, erros, produtos}``."""
    log_system_event("importar_produtos_start", {"path": path})
    registros = load_produtos_from_xlsx(path)

    erros: List[Dict[str, Any]] = []
    produtos: List[int] = []
    for rec in registros:
        linha = rec["_linha"]
        try:
            localizacao_id = _resolver_localizacao(maquina, rec, camara_id)
            produto = maquina.criar(_dados_linha(rec), usuario_id, localizacao_id=localizacao_id)
        except ArmazemError as exc:
            erros.append({"linha": linha, "mensagem": str(exc), "categoria": exc.categoria})
            print_system(f"  linha {linha}: {exc}")
            continue
        produtos.append(produto.id)

    resumo = {
        "total": len(registros),
        "sucessos": len(produtos),
        "erros": erros,
        "produtos": produtos,
    }
    log_file_operation("import", path, len(registros), sucessos=len(produtos), erros=len(erros))
    if erros:
        log_system_event("importar_produtos_erros", {"path": path, "erros": erros}, level="warning")
    return resumo
