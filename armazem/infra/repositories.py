# armazem/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

Classes:
- CamaraRepo
- LocalizacaoRepo
- ProdutoRepo
- MovimentacaoRepo
- SolicitacaoRepo

Os repositórios recebem uma conexão já aberta (de uma ``Transacao`` ou de
uma leitura) e nunca confirmam nada por conta própria: a fronteira
transacional pertence ao caso de uso. Na escrita, avisam a transação
(quando houver) para que o modo degradado possa compensar.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from armazem.domain.coordenadas import gerar_codigo, nivel_acesso
from armazem.domain.erros import ImmutableRecordError
from armazem.domain.models import (
    Camara,
    Coordenada,
    Dimensoes,
    Localizacao,
    Movimentacao,
    Produto,
    SolicitacaoRetirada,
    StatusCamara,
    StatusProduto,
    StatusRetirada,
    TipoArmazenamento,
    TipoMovimentacao,
    TipoRetirada,
)


# -------------------------
# Helpers
# -------------------------

def agora_iso() -> str:
    """Instante atual em UTC, ISO-8601 com microssegundos."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return dict(row)
    if is_dataclass(row):
        return asdict(row)
    raise TypeError("row must be dict or dataclass")


def _plain(val: Any) -> Any:
    """Enums viram seus valores; bool vira 0/1."""
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, bool):
        return int(val)
    return val


def _plain_dict(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _plain(v) for k, v in d.items()}


class _Repo:
    tabela = ""

    def __init__(self, conn: sqlite3.Connection, tx: Any = None):
        self.conn = conn
        self.tx = tx

    def _antes_de_alterar(self, linha_id: int) -> None:
        if self.tx is not None:
            self.tx.antes_de_alterar(self.tabela, linha_id)

    def _antes_de_apagar(self, linha_id: int) -> None:
        if self.tx is not None:
            self.tx.antes_de_apagar(self.tabela, linha_id)

    def _apos_inserir(self, linha_id: int) -> None:
        if self.tx is not None:
            self.tx.apos_inserir(self.tabela, linha_id)

    def _inserir(self, dados: Dict[str, Any]) -> int:
        dados = _plain_dict(dados)
        cols = ", ".join(dados)
        vals = ", ".join(f":{k}" for k in dados)
        cur = self.conn.execute(f"INSERT INTO {self.tabela} ({cols}) VALUES ({vals})", dados)
        novo_id = int(cur.lastrowid)
        self._apos_inserir(novo_id)
        return novo_id

    def _atualizar(self, linha_id: int, campos: Dict[str, Any]) -> int:
        if not campos:
            return 0
        self._antes_de_alterar(linha_id)
        dados = _plain_dict(campos)
        sets = ", ".join(f"{k} = :{k}" for k in dados)
        dados["_id"] = linha_id
        cur = self.conn.execute(f"UPDATE {self.tabela} SET {sets} WHERE id = :_id", dados)
        return cur.rowcount


# -------------------------
# Câmara
# -------------------------

def _row_to_camara(r: sqlite3.Row) -> Camara:
    return Camara(
        id=r["id"],
        nome=r["nome"],
        descricao=r["descricao"],
        dimensoes=Dimensoes(r["quadras"], r["lados"], r["filas"], r["andares"]),
        status=StatusCamara(r["status"]),
        temperatura_alvo=r["temperatura_alvo"],
        umidade_alvo=r["umidade_alvo"],
        criado_em=r["criado_em"],
    )


class CamaraRepo(_Repo):
    tabela = "camara"

    def inserir(self, camara: Camara) -> int:
        return self._inserir(
            {
                "nome": camara.nome,
                "descricao": camara.descricao,
                "quadras": camara.dimensoes.quadras,
                "lados": camara.dimensoes.lados,
                "filas": camara.dimensoes.filas,
                "andares": camara.dimensoes.andares,
                "status": camara.status,
                "temperatura_alvo": camara.temperatura_alvo,
                "umidade_alvo": camara.umidade_alvo,
                "criado_em": camara.criado_em or agora_iso(),
            }
        )

    def obter(self, camara_id: int) -> Optional[Camara]:
        r = self.conn.execute("SELECT * FROM camara WHERE id = ?", (camara_id,)).fetchone()
        return _row_to_camara(r) if r else None

    def obter_por_nome(self, nome: str) -> Optional[Camara]:
        r = self.conn.execute("SELECT * FROM camara WHERE nome = ?", (nome,)).fetchone()
        return _row_to_camara(r) if r else None

    def listar(self) -> List[Camara]:
        cur = self.conn.execute("SELECT * FROM camara ORDER BY id")
        return [_row_to_camara(r) for r in cur.fetchall()]

    def atualizar_status(self, camara_id: int, status: StatusCamara) -> int:
        return self._atualizar(camara_id, {"status": status})

    def atualizar_dimensoes(self, camara_id: int, dims: Dimensoes) -> int:
        return self._atualizar(
            camara_id,
            {"quadras": dims.quadras, "lados": dims.lados, "filas": dims.filas, "andares": dims.andares},
        )


# -------------------------
# Localização
# -------------------------

def _row_to_localizacao(r: sqlite3.Row) -> Localizacao:
    coord = Coordenada(r["quadra"], r["lado"], r["fila"], r["andar"])
    return Localizacao(
        id=r["id"],
        camara_id=r["camara_id"],
        coordenada=coord,
        # o código persistido é só cache: sempre regenerado da coordenada
        codigo=gerar_codigo(coord),
        capacidade_max_kg=float(r["capacidade_max_kg"]),
        peso_atual_kg=float(r["peso_atual_kg"]),
        ocupada=bool(r["ocupada"]),
        nivel_acesso=r["nivel_acesso"] or nivel_acesso(coord.andar),
    )


class LocalizacaoRepo(_Repo):
    tabela = "localizacao"

    def inserir_muitas(self, camara_id: int, itens: Iterable[tuple]) -> List[int]:
        """Insere (coordenada, capacidade) livres; o código é derivado aqui."""
        ids: List[int] = []
        for coord, capacidade in itens:
            ids.append(
                self._inserir(
                    {
                        "camara_id": camara_id,
                        "quadra": coord.quadra,
                        "lado": coord.lado,
                        "fila": coord.fila,
                        "andar": coord.andar,
                        "codigo": gerar_codigo(coord),
                        "ocupada": 0,
                        "capacidade_max_kg": float(capacidade),
                        "peso_atual_kg": 0.0,
                        "nivel_acesso": nivel_acesso(coord.andar),
                    }
                )
            )
        return ids

    def obter(self, localizacao_id: int) -> Optional[Localizacao]:
        r = self.conn.execute("SELECT * FROM localizacao WHERE id = ?", (localizacao_id,)).fetchone()
        return _row_to_localizacao(r) if r else None

    def obter_por_coordenada(self, camara_id: int, coord: Coordenada) -> Optional[Localizacao]:
        r = self.conn.execute(
            """SELECT * FROM localizacao
               WHERE camara_id = ? AND quadra = ? AND lado = ? AND fila = ? AND andar = ?""",
            (camara_id, coord.quadra, coord.lado, coord.fila, coord.andar),
        ).fetchone()
        return _row_to_localizacao(r) if r else None

    def listar_por_camara(self, camara_id: int) -> List[Localizacao]:
        cur = self.conn.execute(
            "SELECT * FROM localizacao WHERE camara_id = ? ORDER BY quadra, lado, fila, andar",
            (camara_id,),
        )
        return [_row_to_localizacao(r) for r in cur.fetchall()]

    def atualizar_ocupacao(self, localizacao_id: int, ocupada: bool, peso_kg: float) -> int:
        return self._atualizar(
            localizacao_id, {"ocupada": bool(ocupada), "peso_atual_kg": round(float(peso_kg), 3)}
        )

    def contar(self, camara_id: int, somente_ocupadas: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM localizacao WHERE camara_id = ?"
        if somente_ocupadas:
            sql += " AND ocupada = 1"
        return int(self.conn.execute(sql, (camara_id,)).fetchone()[0])

    def contar_vinculadas(self, camara_id: int) -> int:
        """Localizações da câmara com produto não-terminal vinculado."""
        return int(
            self.conn.execute(
                """SELECT COUNT(*) FROM produto p
                   JOIN localizacao l ON l.id = p.localizacao_id
                   WHERE l.camara_id = ? AND p.status NOT IN ('RETIRADO', 'REMOVIDO')""",
                (camara_id,),
            ).fetchone()[0]
        )

    def contar_com_historico(self, camara_id: int) -> int:
        return int(
            self.conn.execute(
                """SELECT COUNT(*) FROM movimentacao m
                   WHERE m.localizacao_origem_id IN (SELECT id FROM localizacao WHERE camara_id = ?)
                      OR m.localizacao_destino_id IN (SELECT id FROM localizacao WHERE camara_id = ?)""",
                (camara_id, camara_id),
            ).fetchone()[0]
        )

    def apagar_da_camara(self, camara_id: int) -> int:
        ids = [r[0] for r in self.conn.execute(
            "SELECT id FROM localizacao WHERE camara_id = ?", (camara_id,)
        ).fetchall()]
        # produtos terminais podem ainda apontar para a localização;
        # suas imagens vêm antes das localizações para serem restauradas depois delas
        terminais = [r[0] for r in self.conn.execute(
            """SELECT p.id FROM produto p JOIN localizacao l ON l.id = p.localizacao_id
               WHERE l.camara_id = ? AND p.status IN ('RETIRADO', 'REMOVIDO')""",
            (camara_id,),
        ).fetchall()]
        if self.tx is not None:
            for produto_id in terminais:
                self.tx.antes_de_alterar("produto", produto_id)
        for linha_id in ids:
            self._antes_de_apagar(linha_id)
        if terminais:
            self.conn.execute(
                f"UPDATE produto SET localizacao_id = NULL WHERE id IN ({', '.join('?' for _ in terminais)})",
                terminais,
            )
        cur = self.conn.execute("DELETE FROM localizacao WHERE camara_id = ?", (camara_id,))
        return cur.rowcount

    def disponiveis(self, peso_kg: float = 0.0, camara_id: Optional[int] = None,
                    limite: int = 50) -> List[Localizacao]:
        sql = """SELECT l.* FROM localizacao l
                 JOIN camara c ON c.id = l.camara_id
                 WHERE l.ocupada = 0 AND l.capacidade_max_kg >= ? AND c.status = 'active'"""
        params: List[Any] = [float(peso_kg)]
        if camara_id is not None:
            sql += " AND l.camara_id = ?"
            params.append(camara_id)
        sql += " ORDER BY l.andar, l.capacidade_max_kg, l.id LIMIT ?"
        params.append(int(limite))
        return [_row_to_localizacao(r) for r in self.conn.execute(sql, params).fetchall()]

    def resumo(self, camara_id: int) -> Dict[str, Any]:
        r = self.conn.execute(
            """SELECT COUNT(*) AS total,
                      COALESCE(SUM(ocupada), 0) AS ocupadas,
                      COALESCE(SUM(capacidade_max_kg), 0.0) AS capacidade_total_kg,
                      COALESCE(SUM(peso_atual_kg), 0.0) AS peso_atual_kg
               FROM localizacao WHERE camara_id = ?""",
            (camara_id,),
        ).fetchone()
        return dict(r)


# -------------------------
# Produto
# -------------------------

_COLUNAS_PRODUTO = (
    "nome", "lote", "tipo_semente", "quantidade", "tipo_armazenamento", "peso_por_unidade",
    "peso_total", "localizacao_id", "cliente_id", "data_entrada", "data_validade", "status",
    "observacoes", "produto_origem_id", "criado_por",
)


def _row_to_produto(r: sqlite3.Row) -> Produto:
    return Produto(
        id=r["id"],
        nome=r["nome"],
        lote=r["lote"],
        tipo_semente=r["tipo_semente"],
        quantidade=int(r["quantidade"]),
        tipo_armazenamento=TipoArmazenamento(r["tipo_armazenamento"]),
        peso_por_unidade=float(r["peso_por_unidade"]),
        peso_total=float(r["peso_total"]),
        localizacao_id=r["localizacao_id"],
        cliente_id=r["cliente_id"],
        data_entrada=r["data_entrada"],
        data_validade=r["data_validade"],
        status=StatusProduto(r["status"]),
        observacoes=r["observacoes"],
        produto_origem_id=r["produto_origem_id"],
        versao=int(r["versao"]),
        criado_por=r["criado_por"],
        atualizado_em=r["atualizado_em"],
    )


class ProdutoRepo(_Repo):
    tabela = "produto"

    def inserir(self, dados: Dict[str, Any]) -> int:
        dados = _as_dict(dados)
        row = {k: dados.get(k) for k in _COLUNAS_PRODUTO}
        agora = agora_iso()
        row.update({"versao": 0, "criado_em": agora, "atualizado_em": agora})
        return self._inserir(row)

    def obter(self, produto_id: int) -> Optional[Produto]:
        r = self.conn.execute("SELECT * FROM produto WHERE id = ?", (produto_id,)).fetchone()
        return _row_to_produto(r) if r else None

    def atualizar(self, produto_id: int, **campos: Any) -> int:
        """Atualiza campos, incrementa ``versao`` e carimba ``atualizado_em``."""
        self._antes_de_alterar(produto_id)
        dados = _plain_dict(campos)
        dados["atualizado_em"] = agora_iso()
        sets = ", ".join(f"{k} = :{k}" for k in dados)
        dados["_id"] = produto_id
        cur = self.conn.execute(
            f"UPDATE produto SET {sets}, versao = versao + 1 WHERE id = :_id", dados
        )
        return cur.rowcount

    def ativo_em(self, localizacao_id: int) -> Optional[Produto]:
        r = self.conn.execute(
            """SELECT * FROM produto
               WHERE localizacao_id = ? AND status NOT IN ('RETIRADO', 'REMOVIDO')""",
            (localizacao_id,),
        ).fetchone()
        return _row_to_produto(r) if r else None

    def listar(self, status: Optional[Sequence[StatusProduto]] = None,
               localizacao_id: Optional[int] = None,
               camara_id: Optional[int] = None) -> List[Produto]:
        sql = "SELECT p.* FROM produto p LEFT JOIN localizacao l ON l.id = p.localizacao_id WHERE 1 = 1"
        params: List[Any] = []
        if status:
            sql += f" AND p.status IN ({', '.join('?' for _ in status)})"
            params.extend(_plain(s) for s in status)
        if localizacao_id is not None:
            sql += " AND p.localizacao_id = ?"
            params.append(localizacao_id)
        if camara_id is not None:
            sql += " AND l.camara_id = ?"
            params.append(camara_id)
        sql += " ORDER BY p.id"
        return [_row_to_produto(r) for r in self.conn.execute(sql, params).fetchall()]


# -------------------------
# Movimentações (razão)
# -------------------------

def _row_to_movimentacao(r: sqlite3.Row) -> Movimentacao:
    return Movimentacao(
        id=r["id"],
        produto_id=r["produto_id"],
        tipo=TipoMovimentacao(r["tipo"]),
        localizacao_origem_id=r["localizacao_origem_id"],
        localizacao_destino_id=r["localizacao_destino_id"],
        quantidade=int(r["quantidade"]),
        peso=float(r["peso"]),
        usuario_id=r["usuario_id"],
        motivo=r["motivo"],
        observacoes=r["observacoes"],
        timestamp=r["timestamp"],
        sequencia=int(r["sequencia"]),
        quantidade_anterior=r["quantidade_anterior"],
        quantidade_posterior=r["quantidade_posterior"],
        peso_anterior=r["peso_anterior"],
        peso_posterior=r["peso_posterior"],
        operacao=r["operacao"],
    )


_ORDEM_RAZAO = " ORDER BY timestamp ASC, sequencia ASC, id ASC"


class MovimentacaoRepo(_Repo):
    tabela = "movimentacao"

    def inserir(self, mov: Movimentacao) -> int:
        dados = _as_dict(mov)
        dados.pop("id", None)
        return self._inserir(dados)

    def atualizar(self, *args: Any, **kwargs: Any) -> int:
        raise ImmutableRecordError(self.tabela)

    def apagar(self, *args: Any, **kwargs: Any) -> int:
        raise ImmutableRecordError(self.tabela)

    def proxima_sequencia(self, produto_id: int) -> int:
        r = self.conn.execute(
            "SELECT COALESCE(MAX(sequencia), 0) FROM movimentacao WHERE produto_id = ?",
            (produto_id,),
        ).fetchone()
        return int(r[0]) + 1

    def obter(self, movimentacao_id: int) -> Optional[Movimentacao]:
        r = self.conn.execute("SELECT * FROM movimentacao WHERE id = ?", (movimentacao_id,)).fetchone()
        return _row_to_movimentacao(r) if r else None

    def por_produto(self, produto_id: int) -> List[Movimentacao]:
        cur = self.conn.execute(
            "SELECT * FROM movimentacao WHERE produto_id = ?" + _ORDEM_RAZAO, (produto_id,)
        )
        return [_row_to_movimentacao(r) for r in cur.fetchall()]

    def por_localizacao(self, localizacao_id: int) -> List[Movimentacao]:
        cur = self.conn.execute(
            """SELECT * FROM movimentacao
               WHERE localizacao_origem_id = ? OR localizacao_destino_id = ?""" + _ORDEM_RAZAO,
            (localizacao_id, localizacao_id),
        )
        return [_row_to_movimentacao(r) for r in cur.fetchall()]

    def listar(self, inicio: Optional[str] = None, fim: Optional[str] = None,
               tipo: Optional[TipoMovimentacao] = None,
               usuario_id: Optional[str] = None) -> List[Movimentacao]:
        sql = "SELECT * FROM movimentacao WHERE 1 = 1"
        params: List[Any] = []
        if inicio:
            sql += " AND timestamp >= ?"
            params.append(inicio)
        if fim:
            sql += " AND timestamp <= ?"
            params.append(fim)
        if tipo is not None:
            sql += " AND tipo = ?"
            params.append(_plain(tipo))
        if usuario_id:
            sql += " AND usuario_id = ?"
            params.append(usuario_id)
        sql += _ORDEM_RAZAO
        return [_row_to_movimentacao(r) for r in self.conn.execute(sql, params).fetchall()]


# -------------------------
# Solicitações de retirada
# -------------------------

def _row_to_solicitacao(r: sqlite3.Row) -> SolicitacaoRetirada:
    return SolicitacaoRetirada(
        id=r["id"],
        produto_id=r["produto_id"],
        tipo=TipoRetirada(r["tipo"]),
        quantidade_solicitada=int(r["quantidade_solicitada"]),
        status=StatusRetirada(r["status"]),
        solicitado_por=r["solicitado_por"],
        confirmado_por=r["confirmado_por"],
        cancelado_por=r["cancelado_por"],
        motivo=r["motivo"],
        observacoes=r["observacoes"],
        solicitado_em=r["solicitado_em"],
        confirmado_em=r["confirmado_em"],
        cancelado_em=r["cancelado_em"],
    )


class SolicitacaoRepo(_Repo):
    tabela = "solicitacao_retirada"

    def inserir(self, sol: SolicitacaoRetirada) -> int:
        dados = _as_dict(sol)
        dados.pop("id", None)
        dados["solicitado_em"] = dados.get("solicitado_em") or agora_iso()
        return self._inserir(dados)

    def obter(self, solicitacao_id: int) -> Optional[SolicitacaoRetirada]:
        r = self.conn.execute(
            "SELECT * FROM solicitacao_retirada WHERE id = ?", (solicitacao_id,)
        ).fetchone()
        return _row_to_solicitacao(r) if r else None

    def atualizar(self, solicitacao_id: int, **campos: Any) -> int:
        return self._atualizar(solicitacao_id, campos)

    def pendente_do_produto(self, produto_id: int) -> Optional[SolicitacaoRetirada]:
        r = self.conn.execute(
            "SELECT * FROM solicitacao_retirada WHERE produto_id = ? AND status = 'PENDENTE'",
            (produto_id,),
        ).fetchone()
        return _row_to_solicitacao(r) if r else None

    def listar(self, status: Optional[StatusRetirada] = None,
               produto_id: Optional[int] = None) -> List[SolicitacaoRetirada]:
        sql = "SELECT * FROM solicitacao_retirada WHERE 1 = 1"
        params: List[Any] = []
        if status is not None:
            sql += " AND status = ?"
            params.append(_plain(status))
        if produto_id is not None:
            sql += " AND produto_id = ?"
            params.append(produto_id)
        sql += " ORDER BY solicitado_em DESC, id DESC"
        return [_row_to_solicitacao(r) for r in self.conn.execute(sql, params).fetchall()]
