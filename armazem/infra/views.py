# armazem/infra/views.py
"""
Criação de views auxiliares para os relatórios (somente leitura).

Views criadas:
- vw_inventario:        produtos com código da localização e nome da câmara.
- vw_movimentacoes:     razão com códigos de origem/destino e nome do produto.
- vw_ocupacao_camara:   ocupação consolidada por câmara.

Obs.:
- As views assumem que as migrações V1→V2 já foram aplicadas.
- Um conjunto de índices úteis também é criado, caso não existam.
"""

from __future__ import annotations

from .db import connect


def create_views(db_path: str) -> None:
    with connect(db_path) as c:
        # -----------------------
        # Views (drop + create)
        # -----------------------
        c.executescript(
            """
            ---------------------------
            -- Inventário (produtos + localização)
            ---------------------------
            DROP VIEW IF EXISTS vw_inventario;
            CREATE VIEW vw_inventario AS
            SELECT
                p.id                  AS produto_id,
                p.nome,
                p.lote,
                p.tipo_semente,
                p.quantidade,
                p.tipo_armazenamento,
                p.peso_por_unidade,
                p.peso_total,
                p.status,
                p.cliente_id,
                date(p.data_entrada)  AS data_entrada,
                date(p.data_validade) AS data_validade,
                p.localizacao_id,
                l.codigo              AS localizacao_codigo,
                c.id                  AS camara_id,
                c.nome                AS camara_nome
            FROM produto p
            LEFT JOIN localizacao l ON l.id = p.localizacao_id
            LEFT JOIN camara c      ON c.id = l.camara_id;

            ---------------------------
            -- Razão detalhado
            ---------------------------
            DROP VIEW IF EXISTS vw_movimentacoes;
            CREATE VIEW vw_movimentacoes AS
            SELECT
                m.id,
                m.timestamp,
                m.sequencia,
                m.tipo,
                m.operacao,
                m.produto_id,
                p.nome    AS produto_nome,
                p.lote,
                m.quantidade,
                m.peso,
                lo.codigo AS origem_codigo,
                ld.codigo AS destino_codigo,
                m.usuario_id,
                m.motivo
            FROM movimentacao m
            JOIN produto p           ON p.id = m.produto_id
            LEFT JOIN localizacao lo ON lo.id = m.localizacao_origem_id
            LEFT JOIN localizacao ld ON ld.id = m.localizacao_destino_id;

            ---------------------------
            -- Ocupação por câmara
            ---------------------------
            DROP VIEW IF EXISTS vw_ocupacao_camara;
            CREATE VIEW vw_ocupacao_camara AS
            SELECT
                c.id                                    AS camara_id,
                c.nome                                  AS camara_nome,
                c.status,
                COUNT(l.id)                             AS total_localizacoes,
                COALESCE(SUM(l.ocupada), 0)             AS ocupadas,
                COUNT(l.id) - COALESCE(SUM(l.ocupada), 0) AS livres,
                COALESCE(SUM(l.capacidade_max_kg), 0.0) AS capacidade_total_kg,
                COALESCE(SUM(l.peso_atual_kg), 0.0)     AS peso_atual_kg
            FROM camara c
            LEFT JOIN localizacao l ON l.camara_id = c.id
            GROUP BY c.id, c.nome, c.status;
            """
        )

        # -----------------------
        # Índices (idempotentes)
        # -----------------------
        c.executescript(
            """
            CREATE INDEX IF NOT EXISTS idx_produto_status      ON produto(status);
            CREATE INDEX IF NOT EXISTS idx_produto_validade    ON produto(data_validade);
            CREATE INDEX IF NOT EXISTS idx_localizacao_livre   ON localizacao(camara_id, ocupada);
            CREATE INDEX IF NOT EXISTS idx_mov_produto         ON movimentacao(produto_id, sequencia);
            CREATE INDEX IF NOT EXISTS idx_mov_timestamp       ON movimentacao(timestamp);
            CREATE INDEX IF NOT EXISTS idx_mov_origem          ON movimentacao(localizacao_origem_id);
            CREATE INDEX IF NOT EXISTS idx_mov_destino         ON movimentacao(localizacao_destino_id);
            CREATE INDEX IF NOT EXISTS idx_retirada_status     ON solicitacao_retirada(status);
            """
        )
